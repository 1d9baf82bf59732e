"""
Proof Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from .models import (
    Address,
    Owner,
    PostcardResult,
    Proof,
    ProofStatus,
    ScanRecord,
    Seed,
)


# ====================
# Repository Protocol
# ====================


class ProofRepositoryProtocol(Protocol):
    """Protocol for seed/proof data repository"""

    async def initialize(self) -> None:
        """Initialize repository connection"""
        ...

    async def close(self) -> None:
        """Close repository connection"""
        ...

    # Seeds
    async def save_seed(self, seed: Seed) -> Seed:
        """Save a seed"""
        ...

    async def get_seed(self, seed_id: str) -> Optional[Seed]:
        """Get seed by ID"""
        ...

    async def get_seed_for_owner(self, user_id: str, seed_id: str) -> Optional[Seed]:
        """Get seed by owner and ID"""
        ...

    async def get_seed_for_owner_by_public_id(self, user_id: str, public_id: str) -> Optional[Seed]:
        """Get seed by owner and public code"""
        ...

    async def list_seeds(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Seed]:
        """List an owner's seeds, newest first"""
        ...

    async def update_seed(self, seed_id: str, updates: Dict[str, Any]) -> Optional[Seed]:
        """Update seed fields"""
        ...

    async def delete_seed(self, seed_id: str) -> bool:
        """Delete a seed"""
        ...

    async def list_due_seeds(self, now: datetime) -> List[Seed]:
        """Active seeds whose next_run_at is set and not after now"""
        ...

    # Proofs
    async def save_proof(self, proof: Proof) -> Proof:
        """Save a proof"""
        ...

    async def get_proof(self, proof_id: str) -> Optional[Proof]:
        """Get proof by ID"""
        ...

    async def get_proof_for_owner(self, user_id: str, proof_id: str) -> Optional[Proof]:
        """Get proof by owner and ID"""
        ...

    async def get_proof_for_owner_by_public_id(self, user_id: str, public_id: str) -> Optional[Proof]:
        """Get an owner's newest proof carrying the public code"""
        ...

    async def get_proof_by_resource_id(self, resource_id: str) -> Optional[Proof]:
        """Get proof by mail provider resource ID"""
        ...

    async def list_proofs(
        self,
        user_id: str,
        status: Optional[ProofStatus] = None,
        seed_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Proof]:
        """List an owner's proofs, newest first"""
        ...

    async def update_proof(self, proof_id: str, updates: Dict[str, Any]) -> Optional[Proof]:
        """Update proof fields"""
        ...

    async def delete_proof(self, proof_id: str) -> bool:
        """Delete a proof"""
        ...

    async def orphan_proofs(self, seed_id: str, seed_name: str) -> int:
        """Null the seed back-link of every proof of a seed and snapshot its name"""
        ...

    # Owners
    async def get_owner(self, user_id: str) -> Optional[Owner]:
        """Get owner with provider credentials"""
        ...

    async def update_owner_api_key(self, user_id: str, api_key: Optional[str]) -> Owner:
        """Store (or clear) an owner's provider API key"""
        ...


# ====================
# Event Bus Protocol
# ====================


class EventBusProtocol(Protocol):
    """Protocol for event bus operations"""

    async def publish_event(self, event: Any) -> bool:
        """Publish an event to the event bus"""
        ...


# ====================
# Collaborator Protocols
# ====================


class MailProviderProtocol(Protocol):
    """Protocol for the direct-mail provider"""

    async def create_postcard(
        self,
        api_key: str,
        to_address: Dict[str, Any],
        front: str,
        back: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PostcardResult:
        """Create one postcard for one recipient"""
        ...

    async def get_postcard(self, api_key: str, resource_id: str) -> Dict[str, Any]:
        """Fetch the full postcard record"""
        ...


class StorageProtocol(Protocol):
    """Protocol for the artwork object store"""

    async def upload(self, file_path: str, file_name: str, owner_id: str) -> str:
        """Upload a file and return its public URL"""
        ...

    async def presign(self, public_url: str, ttl_seconds: int = 3600) -> str:
        """Exchange a stored object URL for a time-limited URL"""
        ...

    def is_storage_url(self, value: Optional[str]) -> bool:
        """Whether value points at this object store rather than a template id"""
        ...


class ScanIngestionProtocol(Protocol):
    """Protocol for the scan-ingestion service"""

    async def upload_scan(
        self,
        resource_id: str,
        file_path: str,
        batch_id: Optional[str] = None,
        extra_fields: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Upload a photo of a physical mailpiece"""
        ...

    async def get_scans(self, resource_id: str) -> List[ScanRecord]:
        """List scans recorded for a resource"""
        ...


class ImageResizerProtocol(Protocol):
    """Protocol for the size-constrained resizer"""

    def resize(self, file_path: str, ceiling_bytes: Optional[int] = None, output_dir: Optional[str] = None) -> str:
        """Return a path to an image at or under the ceiling, best effort"""
        ...

    def resize_with_report(
        self, file_path: str, ceiling_bytes: Optional[int] = None, output_dir: Optional[str] = None
    ) -> Any:
        """Like resize, also reporting every file written"""
        ...


# ====================
# Custom Exceptions
# ====================


class ProofServiceError(Exception):
    """Base exception for proof service errors"""
    pass


class ProviderCredentialsMissingError(ProofServiceError):
    """Raised when the seed owner has no mail provider API key"""

    def __init__(self, message: str, user_id: Optional[str] = None):
        super().__init__(message)
        self.user_id = user_id


class SeedNotFoundError(ProofServiceError):
    """Raised when seed is not found"""
    pass


class ProofNotFoundError(ProofServiceError):
    """Raised when proof is not found"""
    pass


class OwnerNotFoundError(ProofServiceError):
    """Raised when the seed owner record is missing"""
    pass


class SeedValidationError(ProofServiceError):
    """Raised when seed validation fails"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class MailProviderError(ProofServiceError):
    """Raised when the mail provider rejects a request"""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class StorageError(ProofServiceError):
    """Raised when the object store fails"""
    pass


class ScanIngestionError(ProofServiceError):
    """Raised when the scan-ingestion service fails"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "ProofRepositoryProtocol",
    "EventBusProtocol",
    "MailProviderProtocol",
    "StorageProtocol",
    "ScanIngestionProtocol",
    "ImageResizerProtocol",
    "ProofServiceError",
    "ProviderCredentialsMissingError",
    "SeedNotFoundError",
    "ProofNotFoundError",
    "OwnerNotFoundError",
    "SeedValidationError",
    "MailProviderError",
    "StorageError",
    "ScanIngestionError",
]

"""
Proof Service Data Models

Canonical data structures for seeds (postcard campaigns), proofs (one
physical mailpiece each), their owners, and the request/response shapes the
service exchanges with callers.
"""

import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


def make_proof_token() -> str:
    """Six uppercase hex digits printed on the mailpiece and used as the proof's public id"""
    return secrets.token_hex(3).upper()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class Cadence(str, Enum):
    """How often a seed runs"""
    ONE_TIME = "one_time"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def is_recurring(self) -> bool:
        return self != Cadence.ONE_TIME


class SeedStatus(str, Enum):
    """Seed scheduling status"""
    ACTIVE = "active"
    PAUSED = "paused"


class ProofStatus(str, Enum):
    """Proof lifecycle status"""
    CREATED = "created"
    IN_PRODUCTION = "in_production"
    MAILED = "mailed"
    DELIVERED = "delivered"
    AWAITING_REVIEW = "awaiting_review"
    COMPLETED = "completed"


class RunOutcome(str, Enum):
    """Aggregate outcome of a seed run"""
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL = "partial"
    ALL_FAILED = "all_failed"


# =============================================================================
# BASE MODELS
# =============================================================================

class BaseContract(BaseModel):
    """Base model for all contracts"""

    model_config = {
        "from_attributes": True,
    }


# =============================================================================
# ADDRESS
# =============================================================================

class Address(BaseContract):
    """US mailing address as accepted by the mail provider"""
    name: Optional[str] = Field(None, max_length=40)
    company: Optional[str] = Field(None, max_length=40)
    address_line1: str = Field(..., min_length=1, max_length=64)
    address_line2: Optional[str] = Field(None, max_length=64)
    address_city: str = Field(..., min_length=1, max_length=200)
    address_state: str = Field(..., pattern=r"^[A-Z]{2}$")
    address_zip: str = Field(..., pattern=r"^\d{5}(-\d{4})?$")
    address_country: str = Field(default="US", min_length=2, max_length=2)
    phone: Optional[str] = Field(None, max_length=40)
    email: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=255)

    @field_validator("address_state", "address_country", mode="before")
    @classmethod
    def normalize_code(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("address_zip", mode="before")
    @classmethod
    def strip_zip(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if v and "@" not in v:
            raise ValueError("Invalid email address")
        return v

    def to_provider_payload(self, company: Optional[str] = None) -> Dict[str, Any]:
        """Address fields in provider wire format, blanks dropped"""
        payload = {
            key: value
            for key, value in self.model_dump().items()
            if value not in (None, "")
        }
        if company is not None:
            payload["company"] = company
        return payload


# =============================================================================
# CORE MODELS
# =============================================================================

class Seed(BaseContract):
    """A postcard campaign definition"""
    seed_id: str = Field(default_factory=lambda: f"sed_{uuid4().hex[:16]}")
    public_id: str = Field(default_factory=lambda: uuid4().hex[:10])
    user_id: str
    name: str = Field(..., min_length=1, max_length=255)

    # Artwork: provider template id (tmpl_...) or a storage URL
    front: str = Field(..., min_length=1)
    back: str = Field(..., min_length=1)

    cadence: Cadence = Field(default=Cadence.ONE_TIME)
    to_address: List[Address] = Field(..., min_length=1)
    status: SeedStatus = Field(default=SeedStatus.ACTIVE)

    # Schedule bookkeeping
    last_run_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None

    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Proof(BaseContract):
    """One physical mailpiece produced from a seed for one recipient"""
    proof_id: str = Field(default_factory=lambda: f"prf_{uuid4().hex[:16]}")
    public_id: str = Field(default_factory=make_proof_token)
    user_id: str

    # Campaign back-link; seed_name is the snapshot kept after orphaning
    seed_id: Optional[str] = None
    seed_name: Optional[str] = None

    # Provider correlation
    resource_id: str = Field(..., min_length=1)
    provider_url: Optional[str] = None
    front_thumbnail_url: Optional[str] = None
    back_thumbnail_url: Optional[str] = None

    status: ProofStatus = Field(default=ProofStatus.CREATED)
    tracking_number: Optional[str] = None
    mailed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    # Review
    quality_rating: Optional[int] = Field(None, ge=1, le=5)
    printer_vendor: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    live_proof_url: Optional[str] = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_orphaned(self) -> bool:
        return self.seed_id is None and self.seed_name is not None


class Owner(BaseContract):
    """Seed owner and their provider credentials"""
    user_id: str
    email: Optional[str] = None
    provider_api_key: Optional[str] = None

    @property
    def has_provider_credentials(self) -> bool:
        return bool(self.provider_api_key and self.provider_api_key.strip())


# =============================================================================
# RUN RESULT MODELS
# =============================================================================

class FailureRecord(BaseContract):
    """A recipient whose postcard could not be created"""
    address_index: int = Field(..., ge=0)
    address: Address
    error: str
    full_error: str


class RunSeedResult(BaseContract):
    """Outcome of one seed run"""
    seed_id: str
    succeeded: List[Proof] = Field(default_factory=list)
    failed: List[FailureRecord] = Field(default_factory=list)
    ran_at: datetime = Field(default_factory=_utcnow)
    next_run_at: Optional[datetime] = None

    @property
    def outcome(self) -> RunOutcome:
        if not self.failed:
            return RunOutcome.ALL_SUCCEEDED
        if self.succeeded:
            return RunOutcome.PARTIAL
        return RunOutcome.ALL_FAILED

    @property
    def summary_message(self) -> str:
        created, failed = len(self.succeeded), len(self.failed)
        if self.outcome == RunOutcome.PARTIAL:
            return f"Seed run partially successful! {created} postcard(s) created, {failed} failed."
        if self.outcome == RunOutcome.ALL_FAILED:
            return f"Failed to create postcards. {failed} error(s) occurred."
        return f"Seed run successfully! {created} postcard(s) created."


class TickReport(BaseContract):
    """Summary of one scheduler tick"""
    checked_at: datetime
    seeds_due: int = 0
    seeds_run: int = 0
    seeds_skipped: int = 0
    seeds_failed: int = 0
    proofs_created: int = 0
    recipient_failures: int = 0


# =============================================================================
# COLLABORATOR PAYLOADS
# =============================================================================

class PostcardResult(BaseContract):
    """Mail provider response for a created postcard"""
    id: str
    url: Optional[str] = None
    front_thumbnail_url: Optional[str] = None
    back_thumbnail_url: Optional[str] = None


class ProviderEventData(BaseContract):
    id: Optional[str] = None
    tracking_number: Optional[str] = None

    model_config = {"from_attributes": True, "extra": "allow"}


class ProviderEvent(BaseContract):
    """Inbound webhook event from the mail provider"""
    type: str = ""
    data: ProviderEventData = Field(default_factory=ProviderEventData)

    model_config = {"from_attributes": True, "extra": "allow"}

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v):
        return v if isinstance(v, str) else ""

    @field_validator("data", mode="before")
    @classmethod
    def coerce_data(cls, v):
        return v if isinstance(v, dict) else {}

    @property
    def resource_id(self) -> Optional[str]:
        return self.data.id or None


class ScanRecord(BaseContract):
    """A scan held by the ingestion service for one resource"""
    url: Optional[str] = None
    resource_id: Optional[str] = None
    status: Optional[str] = None
    file_size: Optional[int] = None
    file_type: Optional[str] = None
    timestamp: Optional[datetime] = None
    created_at: Optional[datetime] = None
    batch_id: Optional[str] = None

    model_config = {"from_attributes": True, "extra": "allow"}

    @property
    def recorded_at(self) -> Optional[datetime]:
        return self.created_at or self.timestamp


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class SeedCreateRequest(BaseContract):
    """Seed creation request"""
    name: str = Field(..., min_length=1, max_length=255)
    front: str = Field(..., min_length=1)
    back: str = Field(..., min_length=1)
    cadence: Cadence = Field(default=Cadence.ONE_TIME)
    to_address: List[Address] = Field(..., min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SeedUpdateRequest(BaseContract):
    """Seed update request"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    front: Optional[str] = Field(None, min_length=1)
    back: Optional[str] = Field(None, min_length=1)
    cadence: Optional[Cadence] = None
    to_address: Optional[List[Address]] = Field(None, min_length=1)
    metadata: Optional[Dict[str, Any]] = None


class ProofReviewRequest(BaseContract):
    """Quality review of a received physical proof"""
    quality_rating: Optional[int] = Field(None, ge=1, le=5)
    printer_vendor: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class ProofStatusRequest(BaseContract):
    """Manual status override"""
    status: ProofStatus


class ProviderKeyRequest(BaseContract):
    """Owner's mail provider API key"""
    api_key: Optional[str] = Field(None, max_length=255)


class ProofDetailsResponse(BaseContract):
    """Proof plus live details fetched from the mail provider"""
    proof: Proof
    size: Optional[str] = None
    mail_type: Optional[str] = None
    date_created: Optional[str] = None
    send_date: Optional[str] = None
    expected_delivery_date: Optional[str] = None


class RunSeedResponse(BaseContract):
    """HTTP view of a seed run"""
    seed_id: str
    outcome: RunOutcome
    message: str
    succeeded: List[Proof] = Field(default_factory=list)
    failed: List[FailureRecord] = Field(default_factory=list)
    next_run_at: Optional[datetime] = None

    @classmethod
    def from_result(cls, result: RunSeedResult) -> "RunSeedResponse":
        return cls(
            seed_id=result.seed_id,
            outcome=result.outcome,
            message=result.summary_message,
            succeeded=result.succeeded,
            failed=result.failed,
            next_run_at=result.next_run_at,
        )


class WebhookResponse(BaseContract):
    """Acknowledgement returned to the mail provider"""
    received: bool = True
    proof_id: Optional[str] = None
    status: Optional[ProofStatus] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    port: int
    version: str
    dependencies: Dict[str, str] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Error response"""
    detail: str
    field: Optional[str] = None


__all__ = [
    # Helpers
    "make_proof_token",
    # Enums
    "Cadence",
    "SeedStatus",
    "ProofStatus",
    "RunOutcome",
    # Core
    "BaseContract",
    "Address",
    "Seed",
    "Proof",
    "Owner",
    "FailureRecord",
    "RunSeedResult",
    "TickReport",
    # Collaborator payloads
    "PostcardResult",
    "ProviderEventData",
    "ProviderEvent",
    "ScanRecord",
    # Requests/responses
    "SeedCreateRequest",
    "SeedUpdateRequest",
    "ProofReviewRequest",
    "ProofStatusRequest",
    "ProviderKeyRequest",
    "ProofDetailsResponse",
    "RunSeedResponse",
    "WebhookResponse",
    "HealthResponse",
    "ErrorResponse",
]

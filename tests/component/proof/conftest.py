"""
Component Test Fixtures for Proof Service

In-memory stand-ins for the repository, Lob, artwork storage, scan
ingestion and the event bus, plus fully wired service objects.
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.proof_service.campaign_dispatcher import CampaignDispatcher
from microservices.proof_service.events.publishers import ProofEventPublisher
from microservices.proof_service.image_resizer import SizeConstrainedResizer
from microservices.proof_service.proof_lifecycle import ProofLifecycle
from microservices.proof_service.proof_service import ProofService
from microservices.proof_service.protocols import MailProviderError
from microservices.proof_service.scheduled_runner import ScheduledRunner
from core.config import ResizeConfig
from tests.contracts.proof.data_contract import (
    Owner,
    PostcardResult,
    Proof,
    ProofStatus,
    ProofTestDataFactory,
    ScanRecord,
    Seed,
    SeedStatus,
)

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


# ====================
# Clock
# ====================


class FrozenClock:
    """Callable clock tests can move forward"""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ====================
# Mock Repository
# ====================


class MockProofRepository:
    """Mock repository for component testing"""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.seeds: Dict[str, Seed] = {}
        self.proofs: Dict[str, Proof] = {}
        self.owners: Dict[str, Owner] = {}
        self._clock = clock or FrozenClock()
        self.fail_save_proof = False
        self.orphan_calls: List[Dict[str, str]] = []

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def health_check(self) -> bool:
        return True

    # Seeds
    async def save_seed(self, seed: Seed) -> Seed:
        self.seeds[seed.seed_id] = seed
        return seed

    async def get_seed(self, seed_id: str) -> Optional[Seed]:
        return self.seeds.get(seed_id)

    async def get_seed_for_owner(self, user_id: str, seed_id: str) -> Optional[Seed]:
        seed = self.seeds.get(seed_id)
        return seed if seed and seed.user_id == user_id else None

    async def get_seed_for_owner_by_public_id(self, user_id: str, public_id: str) -> Optional[Seed]:
        for seed in self.seeds.values():
            if seed.user_id == user_id and seed.public_id == public_id:
                return seed
        return None

    async def list_seeds(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Seed]:
        seeds = sorted(
            (s for s in self.seeds.values() if s.user_id == user_id),
            key=lambda s: s.created_at,
            reverse=True,
        )
        return seeds[offset:offset + limit]

    async def update_seed(self, seed_id: str, updates: Dict[str, Any]) -> Optional[Seed]:
        seed = self.seeds.get(seed_id)
        if not seed:
            return None
        seed = seed.model_copy(update={**updates, "updated_at": self._clock()})
        self.seeds[seed_id] = seed
        return seed

    async def delete_seed(self, seed_id: str) -> bool:
        return self.seeds.pop(seed_id, None) is not None

    async def list_due_seeds(self, now: datetime) -> List[Seed]:
        due = [
            s for s in self.seeds.values()
            if s.status == SeedStatus.ACTIVE and s.next_run_at is not None and s.next_run_at <= now
        ]
        return sorted(due, key=lambda s: s.next_run_at)

    # Proofs
    async def save_proof(self, proof: Proof) -> Proof:
        if self.fail_save_proof:
            raise ConnectionError("database unavailable")
        self.proofs[proof.proof_id] = proof
        return proof

    async def get_proof(self, proof_id: str) -> Optional[Proof]:
        return self.proofs.get(proof_id)

    async def get_proof_for_owner(self, user_id: str, proof_id: str) -> Optional[Proof]:
        proof = self.proofs.get(proof_id)
        return proof if proof and proof.user_id == user_id else None

    async def get_proof_for_owner_by_public_id(self, user_id: str, public_id: str) -> Optional[Proof]:
        matches = [p for p in self.proofs.values() if p.user_id == user_id and p.public_id == public_id]
        return max(matches, key=lambda p: p.created_at) if matches else None

    async def get_proof_by_resource_id(self, resource_id: str) -> Optional[Proof]:
        for proof in self.proofs.values():
            if proof.resource_id == resource_id:
                return proof
        return None

    async def list_proofs(
        self,
        user_id: str,
        status: Optional[ProofStatus] = None,
        seed_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Proof]:
        proofs = [
            p for p in self.proofs.values()
            if p.user_id == user_id
            and (status is None or p.status == status)
            and (seed_id is None or p.seed_id == seed_id)
        ]
        proofs.sort(key=lambda p: p.created_at, reverse=True)
        return proofs[offset:offset + limit]

    async def update_proof(self, proof_id: str, updates: Dict[str, Any]) -> Optional[Proof]:
        proof = self.proofs.get(proof_id)
        if not proof:
            return None
        proof = proof.model_copy(update={**updates, "updated_at": self._clock()})
        self.proofs[proof_id] = proof
        return proof

    async def delete_proof(self, proof_id: str) -> bool:
        return self.proofs.pop(proof_id, None) is not None

    async def orphan_proofs(self, seed_id: str, seed_name: str) -> int:
        self.orphan_calls.append({"seed_id": seed_id, "seed_name": seed_name})
        count = 0
        for proof_id, proof in list(self.proofs.items()):
            if proof.seed_id == seed_id:
                self.proofs[proof_id] = proof.model_copy(update={"seed_id": None, "seed_name": seed_name})
                count += 1
        return count

    # Owners
    async def get_owner(self, user_id: str) -> Optional[Owner]:
        return self.owners.get(user_id)

    async def update_owner_api_key(self, user_id: str, api_key: Optional[str]) -> Owner:
        owner = self.owners.get(user_id) or Owner(user_id=user_id)
        owner = owner.model_copy(update={"provider_api_key": api_key})
        self.owners[user_id] = owner
        return owner


# ====================
# Mock Collaborators
# ====================


class MockMailProvider:
    """Mock Lob client; failures keyed by call index"""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.failures: Dict[int, Exception] = {}
        self.postcards: Dict[str, Dict[str, Any]] = {}
        self.get_error: Optional[Exception] = None

    def fail_at(self, index: int, exc: Optional[Exception] = None) -> None:
        self.failures[index] = exc or MailProviderError(
            "Lob API error: 422",
            status_code=422,
            body={"error": {"message": f"address {index} is undeliverable"}},
        )

    async def create_postcard(self, api_key, to_address, front, back, metadata=None) -> PostcardResult:
        index = len(self.calls)
        self.calls.append({
            "api_key": api_key,
            "to_address": to_address,
            "front": front,
            "back": back,
            "metadata": metadata,
        })
        if index in self.failures:
            raise self.failures[index]

        body = ProofTestDataFactory.make_postcard_response(resource_id=f"psc_mock{index:04d}")
        self.postcards[body["id"]] = body
        return PostcardResult(
            id=body["id"],
            url=body["url"],
            front_thumbnail_url=body["thumbnails"][0]["large"],
            back_thumbnail_url=body["thumbnails"][1]["large"],
        )

    async def get_postcard(self, api_key: str, resource_id: str) -> Dict[str, Any]:
        if self.get_error:
            raise self.get_error
        return self.postcards.get(resource_id) or ProofTestDataFactory.make_postcard_response(resource_id)


class MockStorage:
    """Mock artwork storage"""

    BASE = "https://proof-artwork.s3.us-east-1.amazonaws.com/"

    def __init__(self):
        self.presigned: List[str] = []
        self.uploads: List[Dict[str, str]] = []

    async def upload(self, file_path: str, file_name: str, owner_id: str) -> str:
        self.uploads.append({"file_path": file_path, "file_name": file_name, "owner_id": owner_id})
        return f"{self.BASE}{owner_id}/{file_name}"

    async def presign(self, public_url: str, ttl_seconds: int = 3600) -> str:
        self.presigned.append(public_url)
        return f"{public_url}?X-Amz-Expires={ttl_seconds}&n={len(self.presigned)}"

    def is_storage_url(self, value: Optional[str]) -> bool:
        return bool(value) and value.startswith(self.BASE)


class MockScanClient:
    """Mock scan-ingestion client"""

    def __init__(self):
        self.uploads: List[Dict[str, Any]] = []
        self.scans: Dict[str, List[ScanRecord]] = {}
        self.upload_error: Optional[Exception] = None
        self.record_upload = True

    async def upload_scan(self, resource_id, file_path, batch_id=None, extra_fields=None) -> Dict[str, Any]:
        if self.upload_error:
            raise self.upload_error
        self.uploads.append({
            "resource_id": resource_id,
            "file_path": file_path,
            "size": os.path.getsize(file_path),
            "exists": os.path.exists(file_path),
            "batch_id": batch_id,
            "extra_fields": extra_fields,
        })
        if self.record_upload:
            self.scans.setdefault(resource_id, []).append(ScanRecord(
                url=f"https://scans.example.com/{resource_id}/{len(self.uploads)}.jpg",
                resource_id=resource_id,
                created_at=FIXED_NOW + timedelta(minutes=len(self.uploads)),
            ))
        return {"ok": True}

    async def get_scans(self, resource_id: str) -> List[ScanRecord]:
        return list(self.scans.get(resource_id, []))


class MockEventBus:
    """Mock event bus for component testing"""

    def __init__(self):
        self.published_events: List[Dict[str, Any]] = []
        self.is_connected = True

    async def publish_event(self, event) -> bool:
        self.published_events.append(
            {
                "event_type": event.event_type,
                "source": event.source,
                "data": event.data,
            }
        )
        return True

    async def close(self) -> None:
        self.is_connected = False

    def get_events_by_type(self, event_type: str) -> List[Dict]:
        return [e for e in self.published_events if e["event_type"] == event_type]

    def clear_events(self):
        self.published_events = []


# ====================
# Fixtures
# ====================


@pytest.fixture
def factory():
    """Provide ProofTestDataFactory"""
    return ProofTestDataFactory


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def mock_repository(clock):
    return MockProofRepository(clock)


@pytest.fixture
def mock_mail_provider():
    return MockMailProvider()


@pytest.fixture
def mock_storage():
    return MockStorage()


@pytest.fixture
def mock_scan_client():
    return MockScanClient()


@pytest.fixture
def mock_event_bus():
    return MockEventBus()


@pytest.fixture
def event_publisher(mock_event_bus):
    return ProofEventPublisher(mock_event_bus)


@pytest.fixture
def dispatcher(mock_repository, mock_mail_provider, mock_storage, event_publisher, clock):
    return CampaignDispatcher(
        repository=mock_repository,
        mail_provider=mock_mail_provider,
        storage=mock_storage,
        event_publisher=event_publisher,
        clock=clock,
    )


@pytest.fixture
def resize_config():
    """Small limits so generated images stay small"""
    return ResizeConfig(ceiling_bytes=150_000, min_dimension=100)


@pytest.fixture
def lifecycle(mock_repository, mock_scan_client, event_publisher, resize_config, clock):
    return ProofLifecycle(
        repository=mock_repository,
        scan_client=mock_scan_client,
        resizer=SizeConstrainedResizer(resize_config),
        event_publisher=event_publisher,
        ceiling_bytes=resize_config.ceiling_bytes,
        clock=clock,
    )


@pytest.fixture
def runner(mock_repository, dispatcher, clock):
    return ScheduledRunner(repository=mock_repository, dispatcher=dispatcher, clock=clock)


@pytest.fixture
def proof_service(mock_repository, dispatcher, mock_mail_provider, mock_storage, event_publisher, clock):
    return ProofService(
        repository=mock_repository,
        dispatcher=dispatcher,
        mail_provider=mock_mail_provider,
        storage=mock_storage,
        event_publisher=event_publisher,
        clock=clock,
    )


@pytest.fixture
def owner(mock_repository, factory):
    """Owner with a provider key, stored in the repository"""
    owner = factory.make_owner()
    mock_repository.owners[owner.user_id] = owner
    return owner


def write_noise_image(path: str, size=(600, 400), image_format: str = "JPEG", mode: str = "RGB", **save_kwargs) -> str:
    """Incompressible image so file size tracks pixel count"""
    from PIL import Image

    channels = len(mode)
    image = Image.frombytes(mode, size, os.urandom(size[0] * size[1] * channels))
    image.save(path, image_format, **save_kwargs)
    return path


@pytest.fixture
def noise_image():
    return write_noise_image

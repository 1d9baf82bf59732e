"""
Proof Service Business Logic

Seed and proof management used by the HTTP layer. Fan-out, provider events
and scheduling live in their own modules; this facade owns CRUD, ownership
checks and the schedule bookkeeping that follows user edits.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .campaign_dispatcher import CampaignDispatcher, compute_next_run
from .clients.lob_client import LobClient
from .events.publishers import ProofEventPublisher
from .models import (
    Owner,
    Proof,
    ProofDetailsResponse,
    ProofStatus,
    RunSeedResult,
    Seed,
    SeedCreateRequest,
    SeedStatus,
    SeedUpdateRequest,
)
from .protocols import (
    MailProviderProtocol,
    OwnerNotFoundError,
    ProofNotFoundError,
    ProofRepositoryProtocol,
    ProviderCredentialsMissingError,
    SeedNotFoundError,
    SeedValidationError,
    StorageProtocol,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProofService:
    """Seed/proof management facade"""

    # Provider fields surfaced on the proof details view
    DETAIL_FIELDS = ("size", "mail_type", "date_created", "send_date", "expected_delivery_date")

    def __init__(
        self,
        repository: ProofRepositoryProtocol,
        dispatcher: CampaignDispatcher,
        mail_provider: Optional[MailProviderProtocol] = None,
        storage: Optional[StorageProtocol] = None,
        event_publisher: Optional[ProofEventPublisher] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repository = repository
        self.dispatcher = dispatcher
        self.mail_provider = mail_provider
        self.storage = storage
        self.event_publisher = event_publisher or ProofEventPublisher()
        self._clock = clock

    # ====================
    # Seeds
    # ====================

    async def create_seed(self, request: SeedCreateRequest, user_id: str) -> Seed:
        """
        Create an active seed.

        Recurring seeds are due immediately so the next scheduler tick picks
        them up; one-time seeds wait for an explicit run.
        """
        now = self._clock()
        seed = Seed(
            user_id=user_id,
            name=request.name,
            front=request.front,
            back=request.back,
            cadence=request.cadence,
            to_address=request.to_address,
            status=SeedStatus.ACTIVE,
            next_run_at=now if request.cadence.is_recurring else None,
            metadata=request.metadata or {},
            created_at=now,
            updated_at=now,
        )

        saved = await self.repository.save_seed(seed)
        logger.info(
            f"Seed created: {saved.seed_id} ({saved.cadence.value}, {len(saved.to_address)} recipient(s))"
        )
        await self.event_publisher.publish_seed_created(saved.seed_id, user_id, saved.cadence.value)
        return saved

    async def get_seed(self, seed_id: str, user_id: str) -> Seed:
        seed = await self.repository.get_seed_for_owner(user_id, seed_id)
        if not seed:
            raise SeedNotFoundError(f"Seed not found: {seed_id}")
        return seed

    async def get_seed_by_code(self, public_id: str, user_id: str) -> Seed:
        """Look a seed up by the public code printed on its mailpieces"""
        seed = await self.repository.get_seed_for_owner_by_public_id(user_id, public_id)
        if not seed:
            raise SeedNotFoundError(f"Seed not found for code: {public_id}")
        return seed

    async def list_seeds(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Seed]:
        return await self.repository.list_seeds(user_id, limit=limit, offset=offset)

    async def update_seed(self, seed_id: str, user_id: str, request: SeedUpdateRequest) -> Seed:
        """Apply a partial edit; a cadence change reschedules an active seed"""
        seed = await self.get_seed(seed_id, user_id)

        updates: Dict[str, Any] = request.model_dump(exclude_unset=True, exclude_none=True)
        if "to_address" in updates:
            # model_dump turned the validated addresses back into dicts
            updates["to_address"] = request.to_address
        if not updates:
            raise SeedValidationError("No fields to update")

        new_cadence = request.cadence
        if new_cadence is not None and new_cadence != seed.cadence and seed.status == SeedStatus.ACTIVE:
            if new_cadence.is_recurring:
                anchor = seed.last_run_at or self._clock()
                updates["next_run_at"] = compute_next_run(new_cadence, anchor)
            else:
                updates["next_run_at"] = None

        updated = await self.repository.update_seed(seed_id, updates)
        if not updated:
            raise SeedNotFoundError(f"Seed not found: {seed_id}")

        logger.info(f"Seed updated: {seed_id} fields={sorted(updates)}")
        return updated

    async def pause_seed(self, seed_id: str, user_id: str) -> Seed:
        seed = await self.get_seed(seed_id, user_id)
        if seed.status == SeedStatus.PAUSED:
            return seed

        updated = await self.repository.update_seed(seed_id, {"status": SeedStatus.PAUSED})
        logger.info(f"Seed paused: {seed_id}")
        return updated

    async def resume_seed(self, seed_id: str, user_id: str) -> Seed:
        """Reactivate a seed; a recurring seed without a next run becomes due now"""
        seed = await self.get_seed(seed_id, user_id)
        if seed.status == SeedStatus.ACTIVE:
            return seed

        updates: Dict[str, Any] = {"status": SeedStatus.ACTIVE}
        if seed.cadence.is_recurring and seed.next_run_at is None:
            updates["next_run_at"] = self._clock()

        updated = await self.repository.update_seed(seed_id, updates)
        logger.info(f"Seed resumed: {seed_id} next_run_at={updated.next_run_at}")
        return updated

    async def delete_seed(self, seed_id: str, user_id: str) -> int:
        """
        Delete a seed, keeping its proofs.

        Proofs lose their seed back-link and keep a snapshot of the seed
        name. Returns the number of proofs orphaned.
        """
        seed = await self.get_seed(seed_id, user_id)

        orphaned = await self.repository.orphan_proofs(seed.seed_id, seed.name)
        await self.repository.delete_seed(seed.seed_id)

        logger.info(f"Seed deleted: {seed_id}, {orphaned} proof(s) orphaned")
        await self.event_publisher.publish_seed_deleted(seed_id, user_id, orphaned)
        return orphaned

    async def run_seed(self, seed_id: str, user_id: str) -> RunSeedResult:
        """Run a seed now, regardless of schedule"""
        seed = await self.get_seed(seed_id, user_id)
        owner = await self._get_owner_with_credentials(user_id)
        return await self.dispatcher.run(seed, owner)

    async def upload_artwork(self, user_id: str, file_path: str, file_name: str) -> str:
        """Store seed artwork and return the URL to use as front or back"""
        if not self.storage:
            raise SeedValidationError("Artwork storage is not configured", "front")

        url = await self.storage.upload(file_path, file_name, user_id)
        logger.info(f"Artwork uploaded for {user_id}: {url}")
        return url

    # ====================
    # Proofs
    # ====================

    async def list_proofs(
        self,
        user_id: str,
        status: Optional[ProofStatus] = None,
        seed_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Proof]:
        return await self.repository.list_proofs(user_id, status=status, seed_id=seed_id, limit=limit, offset=offset)

    async def get_proof(self, proof_id: str, user_id: str) -> Proof:
        proof = await self.repository.get_proof_for_owner(user_id, proof_id)
        if not proof:
            raise ProofNotFoundError(f"Proof not found: {proof_id}")
        return proof

    async def get_proof_by_code(self, public_id: str, user_id: str) -> Proof:
        """Match a physical mailpiece to its proof by the printed code"""
        proof = await self.repository.get_proof_for_owner_by_public_id(user_id, public_id)
        if not proof:
            raise ProofNotFoundError(f"Proof not found for code: {public_id}")
        return proof

    async def get_proof_details(self, proof_id: str, user_id: str) -> ProofDetailsResponse:
        """
        Proof plus live provider details.

        Thumbnails missing on the stored proof are filled from the provider
        record. Any provider failure leaves the details out.
        """
        proof = await self.get_proof(proof_id, user_id)
        details = ProofDetailsResponse(proof=proof)

        if not self.mail_provider:
            return details

        owner = await self.repository.get_owner(user_id)
        if not owner or not owner.has_provider_credentials:
            logger.info(f"No provider credentials for {user_id}, returning stored proof {proof_id} only")
            return details

        try:
            postcard = await self.mail_provider.get_postcard(owner.provider_api_key, proof.resource_id)
        except Exception as e:
            logger.warning(f"Could not fetch provider details for proof {proof_id}: {e}")
            return details

        for name in self.DETAIL_FIELDS:
            value = postcard.get(name)
            if value is not None:
                setattr(details, name, str(value))

        thumbnails = LobClient.thumbnails_from(postcard)
        fills = {
            key: value
            for key, value in thumbnails.items()
            if value and not getattr(proof, key)
        }
        if fills:
            details.proof = proof.model_copy(update=fills)

        return details

    async def delete_proof(self, proof_id: str, user_id: str) -> None:
        proof = await self.get_proof(proof_id, user_id)
        await self.repository.delete_proof(proof.proof_id)
        logger.info(f"Proof deleted: {proof_id}")
        await self.event_publisher.publish_proof_deleted(proof)

    # ====================
    # Owners
    # ====================

    async def set_provider_api_key(self, user_id: str, api_key: Optional[str]) -> Owner:
        """Store the owner's mail provider key; a blank key keeps the stored one"""
        key = api_key.strip() if api_key else None
        if not key:
            existing = await self.repository.get_owner(user_id)
            if existing:
                logger.info(f"Blank provider API key for {user_id}, keeping the stored key")
                return existing
        owner = await self.repository.update_owner_api_key(user_id, key or None)
        logger.info(f"Provider API key {'set' if key else 'left empty'} for {user_id}")
        return owner

    async def _get_owner_with_credentials(self, user_id: str) -> Owner:
        owner = await self.repository.get_owner(user_id)
        if not owner:
            raise OwnerNotFoundError(f"Owner not found: {user_id}")
        if not owner.has_provider_credentials:
            raise ProviderCredentialsMissingError(
                f"User {user_id} does not have a mail provider API key configured",
                user_id=user_id,
            )
        return owner


__all__ = ["ProofService"]

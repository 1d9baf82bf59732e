"""
Campaign Dispatcher

Fans a seed out into one postcard per recipient, records every outcome,
and advances the seed's schedule.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from dateutil.relativedelta import relativedelta

from .events.publishers import ProofEventPublisher
from .models import (
    Address,
    Cadence,
    FailureRecord,
    Owner,
    PostcardResult,
    Proof,
    ProofStatus,
    RunSeedResult,
    Seed,
    SeedStatus,
    make_proof_token,
)
from .protocols import (
    MailProviderProtocol,
    ProofRepositoryProtocol,
    ProviderCredentialsMissingError,
    StorageProtocol,
)
from .provider_errors import classify_provider_error, describe_failure

logger = logging.getLogger(__name__)


def compute_next_run(cadence: Cadence, from_time: datetime) -> Optional[datetime]:
    """
    Next scheduled run for a cadence.

    one_time -> None, weekly -> +7 days, monthly -> +1 calendar month
    (clamped to the last day of a shorter month).
    """
    if cadence == Cadence.WEEKLY:
        return from_time + timedelta(days=7)
    if cadence == Cadence.MONTHLY:
        return from_time + relativedelta(months=1)
    return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CampaignDispatcher:
    """Runs a seed against the mail provider"""

    PROOF_COMPANY_PREFIX = "Proof"

    def __init__(
        self,
        repository: ProofRepositoryProtocol,
        mail_provider: MailProviderProtocol,
        storage: Optional[StorageProtocol] = None,
        event_publisher: Optional[ProofEventPublisher] = None,
        presign_ttl_seconds: int = 3600,
        clock: Callable[[], datetime] = _utcnow,
        token_factory: Callable[[], str] = make_proof_token,
    ):
        self.repository = repository
        self.mail_provider = mail_provider
        self.storage = storage
        self.event_publisher = event_publisher or ProofEventPublisher()
        self.presign_ttl_seconds = presign_ttl_seconds
        self._clock = clock
        self._token_factory = token_factory

    async def run(self, seed: Seed, owner: Owner) -> RunSeedResult:
        """
        Create one postcard per recipient of a seed.

        Recipient failures are recorded and never stop the batch. Schedule
        bookkeeping is written once after every recipient was attempted,
        even when all of them failed.

        Raises:
            ProviderCredentialsMissingError: owner has no provider API key
        """
        if not owner.has_provider_credentials:
            raise ProviderCredentialsMissingError(
                f"User {owner.user_id} does not have a mail provider API key configured",
                user_id=owner.user_id,
            )

        # Run against the persisted recipients and artwork
        current = await self.repository.get_seed(seed.seed_id) or seed

        logger.info(
            f"Running seed {current.seed_id} ({current.name}) for {len(current.to_address)} recipient(s)"
        )

        succeeded: List[Proof] = []
        failed: List[FailureRecord] = []

        for index, address in enumerate(current.to_address):
            token = self._token_factory()

            try:
                postcard = await self._create_postcard(current, owner, address, token)
            except Exception as e:
                error = classify_provider_error(e)
                full_error = describe_failure(e)
                logger.error(
                    f"Postcard creation failed for seed {current.seed_id} recipient {index}: {full_error}"
                )
                failed.append(FailureRecord(
                    address_index=index,
                    address=address,
                    error=error.display,
                    full_error=full_error,
                ))
                continue

            proof = await self.repository.save_proof(Proof(
                public_id=token,
                user_id=current.user_id,
                seed_id=current.seed_id,
                resource_id=postcard.id,
                provider_url=postcard.url,
                front_thumbnail_url=postcard.front_thumbnail_url,
                back_thumbnail_url=postcard.back_thumbnail_url,
                status=ProofStatus.CREATED,
            ))
            succeeded.append(proof)
            logger.info(f"Proof {proof.proof_id} created for resource {proof.resource_id} (recipient {index})")
            await self.event_publisher.publish_proof_created(proof)

        ran_at = self._clock()
        updates = {
            "last_run_at": ran_at,
            "next_run_at": compute_next_run(current.cadence, ran_at),
        }
        if current.cadence == Cadence.ONE_TIME:
            updates["status"] = SeedStatus.PAUSED

        await self.repository.update_seed(current.seed_id, updates)

        result = RunSeedResult(
            seed_id=current.seed_id,
            succeeded=succeeded,
            failed=failed,
            ran_at=ran_at,
            next_run_at=updates["next_run_at"],
        )
        logger.info(
            f"Seed {current.seed_id} run finished: {len(succeeded)} created, {len(failed)} failed, "
            f"next run {result.next_run_at.isoformat() if result.next_run_at else 'none'}"
        )
        await self.event_publisher.publish_seed_run_completed(current.user_id, result)
        return result

    async def _create_postcard(self, seed: Seed, owner: Owner, address: Address, token: str) -> PostcardResult:
        to_address = address.to_provider_payload(company=f"{self.PROOF_COMPANY_PREFIX} {token}")

        # Presigned URLs expire, so resolve per recipient right before the call
        front = await self._resolve_artwork(seed.front)
        back = await self._resolve_artwork(seed.back)

        return await self.mail_provider.create_postcard(
            owner.provider_api_key,
            to_address,
            front,
            back,
            metadata={"seed_public_id": seed.public_id, "proof_public_id": token},
        )

    async def _resolve_artwork(self, value: str) -> str:
        if self.storage and value and self.storage.is_storage_url(value):
            return await self.storage.presign(value, self.presign_ttl_seconds)
        return value


__all__ = ["CampaignDispatcher", "compute_next_run"]

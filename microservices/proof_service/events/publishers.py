"""
Proof Event Publishers

Publishes events to NATS JetStream.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from core.nats_client import Event, ServiceSource

from ..models import Proof, ProofStatus, RunSeedResult
from .models import (
    ProofCreatedEventData,
    ProofEventType,
    ProofPhysicalCopyEventData,
    ProofStatusChangedEventData,
    SeedDeletedEventData,
    SeedRunCompletedEventData,
)

logger = logging.getLogger(__name__)


class ProofEventPublisher:
    """Publisher for proof service events"""

    def __init__(self, event_bus=None, source: ServiceSource = ServiceSource.PROOF_SERVICE):
        self.event_bus = event_bus
        self.source = source

    async def publish(self, event_type: ProofEventType, data: Dict[str, Any]) -> bool:
        """
        Publish an event to NATS.

        Args:
            event_type: The event type enum
            data: Event data payload

        Returns:
            True if published successfully, False otherwise
        """
        if not self.event_bus:
            logger.debug(f"Event bus not configured, skipping publish: {event_type.value}")
            return False

        try:
            event = Event(event_type=event_type.value, source=self.source, data=data)
            return await self.event_bus.publish_event(event)
        except Exception as e:
            logger.error(f"Failed to publish event {event_type.value}: {e}")
            return False

    # ====================
    # Proof Events
    # ====================

    async def publish_proof_created(self, proof: Proof) -> bool:
        data = ProofCreatedEventData(
            proof_id=proof.proof_id,
            public_id=proof.public_id,
            user_id=proof.user_id,
            seed_id=proof.seed_id,
            resource_id=proof.resource_id,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(ProofEventType.PROOF_CREATED, data.model_dump(mode="json"))

    async def publish_status_changed(
        self,
        proof: Proof,
        previous_status: ProofStatus,
        source: str,
    ) -> bool:
        data = ProofStatusChangedEventData(
            proof_id=proof.proof_id,
            user_id=proof.user_id,
            resource_id=proof.resource_id,
            previous_status=previous_status.value,
            status=proof.status.value,
            source=source,
            tracking_number=proof.tracking_number,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(ProofEventType.PROOF_STATUS_CHANGED, data.model_dump(mode="json"))

    async def publish_proof_reviewed(self, proof: Proof) -> bool:
        return await self.publish(ProofEventType.PROOF_REVIEWED, {
            "proof_id": proof.proof_id,
            "user_id": proof.user_id,
            "quality_rating": proof.quality_rating,
            "printer_vendor": proof.printer_vendor,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    async def publish_physical_copy_attached(self, proof: Proof) -> bool:
        data = ProofPhysicalCopyEventData(
            proof_id=proof.proof_id,
            user_id=proof.user_id,
            resource_id=proof.resource_id,
            live_proof_url=proof.live_proof_url or "",
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(ProofEventType.PROOF_PHYSICAL_COPY_ATTACHED, data.model_dump(mode="json"))

    async def publish_proof_deleted(self, proof: Proof) -> bool:
        return await self.publish(ProofEventType.PROOF_DELETED, {
            "proof_id": proof.proof_id,
            "user_id": proof.user_id,
            "resource_id": proof.resource_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    # ====================
    # Seed Events
    # ====================

    async def publish_seed_created(self, seed_id: str, user_id: str, cadence: str) -> bool:
        return await self.publish(ProofEventType.SEED_CREATED, {
            "seed_id": seed_id,
            "user_id": user_id,
            "cadence": cadence,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    async def publish_seed_run_completed(self, user_id: str, result: RunSeedResult) -> bool:
        data = SeedRunCompletedEventData(
            seed_id=result.seed_id,
            user_id=user_id,
            outcome=result.outcome.value,
            proof_ids=[p.proof_id for p in result.succeeded],
            failed_indexes=[f.address_index for f in result.failed],
            next_run_at=result.next_run_at,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(ProofEventType.SEED_RUN_COMPLETED, data.model_dump(mode="json"))

    async def publish_seed_deleted(self, seed_id: str, user_id: str, orphaned_proofs: int) -> bool:
        data = SeedDeletedEventData(
            seed_id=seed_id,
            user_id=user_id,
            orphaned_proofs=orphaned_proofs,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(ProofEventType.SEED_DELETED, data.model_dump(mode="json"))


__all__ = ["ProofEventPublisher"]

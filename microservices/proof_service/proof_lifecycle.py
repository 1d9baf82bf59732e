"""
Proof Lifecycle

State machine for a single proof:

    created -> in_production -> mailed -> delivered -> awaiting_review -> completed

Provider events move proofs forward through a pure transition function.
Users can force a review (always lands on completed) or set any status
directly, and can attach a photo of the physical copy without touching status.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from .events.publishers import ProofEventPublisher
from .image_resizer import SizeConstrainedResizer
from .models import (
    Proof,
    ProofReviewRequest,
    ProofStatus,
    ProviderEvent,
    ScanRecord,
)
from .protocols import (
    ImageResizerProtocol,
    ProofNotFoundError,
    ProofRepositoryProtocol,
    ProofServiceError,
    ScanIngestionProtocol,
)

logger = logging.getLogger(__name__)


# ====================
# Transition function
# ====================

# Provider events never move a proof out of this status
TERMINAL_STATUS = ProofStatus.COMPLETED


@dataclass(frozen=True)
class ProofTransition:
    """Field writes to apply to one proof"""
    proof_id: str
    previous_status: ProofStatus
    updates: Dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> ProofStatus:
        return self.updates.get("status", self.previous_status)

    @property
    def status_changed(self) -> bool:
        return self.status != self.previous_status


@dataclass(frozen=True)
class NoOp:
    """Event accepted and discarded"""
    reason: str


TransitionResult = Union[ProofTransition, NoOp]


def transition_for_event(
    event: ProviderEvent,
    proof: Optional[Proof],
    received_at: datetime,
) -> TransitionResult:
    """Map a provider event and the proof it refers to onto field writes"""
    if not event.resource_id:
        return NoOp("event has no resource id")
    if proof is None or proof.resource_id != event.resource_id:
        return NoOp(f"no proof for resource {event.resource_id}")

    tracking_number = event.data.tracking_number or None
    updates: Dict[str, Any] = {}

    if event.type.endswith(".mailed"):
        if proof.status != TERMINAL_STATUS:
            updates["status"] = ProofStatus.MAILED
        if proof.mailed_at is None:
            updates["mailed_at"] = received_at
    elif event.type.endswith(".delivered"):
        if proof.status != TERMINAL_STATUS:
            updates["status"] = ProofStatus.AWAITING_REVIEW
        updates["delivered_at"] = received_at
    else:
        return NoOp(f"unhandled event type {event.type or '<empty>'}")

    if tracking_number:
        updates["tracking_number"] = tracking_number

    if not updates:
        return NoOp(f"{event.type} changes nothing for proof {proof.proof_id} in {proof.status.value}")

    return ProofTransition(proof_id=proof.proof_id, previous_status=proof.status, updates=updates)


def pick_latest_scan(scans: List[ScanRecord]) -> Optional[ScanRecord]:
    """Most recent scan that carries a URL"""
    with_url = [s for s in scans if s.url]
    if not with_url:
        return None
    dated = [s for s in with_url if s.recorded_at is not None]
    if not dated:
        return with_url[0]
    return max(dated, key=lambda s: s.recorded_at)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ====================
# Lifecycle service
# ====================


class ProofLifecycle:
    """Applies provider events and user actions to proofs"""

    def __init__(
        self,
        repository: ProofRepositoryProtocol,
        scan_client: Optional[ScanIngestionProtocol] = None,
        resizer: Optional[ImageResizerProtocol] = None,
        event_publisher: Optional[ProofEventPublisher] = None,
        ceiling_bytes: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repository = repository
        self.scan_client = scan_client
        self.resizer = resizer or SizeConstrainedResizer()
        self.event_publisher = event_publisher or ProofEventPublisher()
        self.ceiling_bytes = ceiling_bytes
        self._clock = clock

    async def handle_provider_event(self, payload: Any) -> Optional[Proof]:
        """
        Apply one provider webhook.

        Returns the updated proof, or None when the event was discarded.
        Unmatched and malformed events never raise; persistence errors do.
        """
        try:
            event = payload if isinstance(payload, ProviderEvent) else ProviderEvent.model_validate(payload or {})
        except ValidationError as e:
            logger.warning(f"Discarding malformed provider event: {e}")
            return None

        proof = None
        if event.resource_id:
            proof = await self.repository.get_proof_by_resource_id(event.resource_id)

        outcome = transition_for_event(event, proof, self._clock())
        if isinstance(outcome, NoOp):
            logger.info(f"Provider event {event.type or '<empty>'} discarded: {outcome.reason}")
            return None

        updated = await self.repository.update_proof(outcome.proof_id, outcome.updates)
        if updated is None:
            logger.warning(f"Proof {outcome.proof_id} vanished while applying {event.type}")
            return None

        logger.info(
            f"Proof {updated.proof_id} {outcome.previous_status.value} -> {outcome.status.value} "
            f"via {event.type}"
        )
        if outcome.status_changed:
            await self.event_publisher.publish_status_changed(updated, outcome.previous_status, "provider_event")
        return updated

    async def submit_review(self, proof_id: str, user_id: str, review: ProofReviewRequest) -> Proof:
        """Record a quality review; forces completed from any state"""
        proof = await self._get_owned_proof(proof_id, user_id)

        updates: Dict[str, Any] = review.model_dump(exclude_unset=True)
        updates["status"] = ProofStatus.COMPLETED

        updated = await self.repository.update_proof(proof_id, updates)
        logger.info(f"Proof {proof_id} reviewed (rating={updated.quality_rating}), status completed")

        await self.event_publisher.publish_proof_reviewed(updated)
        if proof.status != ProofStatus.COMPLETED:
            await self.event_publisher.publish_status_changed(updated, proof.status, "review")
        return updated

    async def set_status(self, proof_id: str, user_id: str, status: ProofStatus) -> Proof:
        """Manual override to any status"""
        proof = await self._get_owned_proof(proof_id, user_id)

        updated = await self.repository.update_proof(proof_id, {"status": status})
        logger.info(f"Proof {proof_id} status manually set {proof.status.value} -> {status.value}")

        if proof.status != status:
            await self.event_publisher.publish_status_changed(updated, proof.status, "manual")
        return updated

    async def attach_physical_copy(
        self,
        proof_id: str,
        user_id: str,
        file_path: str,
        batch_id: Optional[str] = None,
        extra_fields: Optional[Dict[str, str]] = None,
        work_dir: Optional[str] = None,
    ) -> Proof:
        """
        Forward a photo of the received mailpiece to scan ingestion and keep
        a reference to the latest scan. Status is left unchanged.

        The caller keeps ownership of file_path; resized copies made here are
        removed before returning.
        """
        proof = await self._get_owned_proof(proof_id, user_id)
        if not self.scan_client:
            raise ProofServiceError("Scan ingestion is not configured")

        report = await asyncio.to_thread(self.resizer.resize_with_report, file_path, self.ceiling_bytes, work_dir)
        try:
            await self.scan_client.upload_scan(proof.resource_id, report.path, batch_id, extra_fields)
            scans = await self.scan_client.get_scans(proof.resource_id)
        finally:
            self._cleanup(report.attempt_paths)

        latest = pick_latest_scan(scans)
        if latest is None:
            logger.warning(f"No scan URL returned for resource {proof.resource_id}, proof {proof_id} unchanged")
            return proof

        updated = await self.repository.update_proof(proof_id, {"live_proof_url": latest.url})
        logger.info(f"Physical copy attached to proof {proof_id}: {latest.url}")
        await self.event_publisher.publish_physical_copy_attached(updated)
        return updated

    async def _get_owned_proof(self, proof_id: str, user_id: str) -> Proof:
        proof = await self.repository.get_proof_for_owner(user_id, proof_id)
        if not proof:
            raise ProofNotFoundError(f"Proof not found: {proof_id}")
        return proof

    @staticmethod
    def _cleanup(paths: List[str]) -> None:
        for path in paths:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Could not remove intermediate file {path}: {e}")


__all__ = [
    "ProofLifecycle",
    "ProofTransition",
    "NoOp",
    "transition_for_event",
    "pick_latest_scan",
    "TERMINAL_STATUS",
]

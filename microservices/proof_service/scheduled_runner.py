"""
Scheduled Runner

Periodic entry point that finds every due seed and runs it through the
CampaignDispatcher. Triggered from cron (scripts/run_due_seeds.py) or the
scheduler tick endpoint; holds no lock, so overlapping ticks may run a seed twice.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .campaign_dispatcher import CampaignDispatcher
from .models import TickReport
from .protocols import ProofRepositoryProtocol

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScheduledRunner:
    """Runs all seeds whose next_run_at has passed"""

    def __init__(
        self,
        repository: ProofRepositoryProtocol,
        dispatcher: CampaignDispatcher,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repository = repository
        self.dispatcher = dispatcher
        self._clock = clock

    async def tick(self, now: Optional[datetime] = None) -> TickReport:
        """One pass over the due seeds; a failing seed never stops the others"""
        now = now or self._clock()
        due = await self.repository.list_due_seeds(now)
        report = TickReport(checked_at=now, seeds_due=len(due))

        logger.info(f"Scheduler tick at {now.isoformat()}: {len(due)} seed(s) due")

        for seed in due:
            try:
                owner = await self.repository.get_owner(seed.user_id)
                if owner is None:
                    logger.warning(f"Skipping seed {seed.seed_id}: owner {seed.user_id} not found")
                    report.seeds_skipped += 1
                    continue
                if not owner.has_provider_credentials:
                    logger.warning(
                        f"Skipping seed {seed.seed_id}: owner {seed.user_id} has no mail provider API key"
                    )
                    report.seeds_skipped += 1
                    continue

                result = await self.dispatcher.run(seed, owner)
                report.seeds_run += 1
                report.proofs_created += len(result.succeeded)
                report.recipient_failures += len(result.failed)
            except Exception as e:
                logger.error(f"Scheduled run of seed {seed.seed_id} failed: {e}", exc_info=True)
                report.seeds_failed += 1

        logger.info(
            f"Scheduler tick done: run={report.seeds_run} skipped={report.seeds_skipped} "
            f"failed={report.seeds_failed} proofs={report.proofs_created}"
        )
        return report


__all__ = ["ScheduledRunner"]

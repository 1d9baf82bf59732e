#!/usr/bin/env python3
"""
Scheduler entry point for cron.

Runs one tick of the proof service scheduler: every active seed whose
next_run_at has passed is fanned out once.

    */15 * * * * python scripts/run_due_seeds.py
"""

import asyncio
import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from dateutil import parser as date_parser

# Add project root to Python path
sys.path.append(str(Path(__file__).parent.parent))

from core.config import get_settings, setup_logging
from microservices.proof_service.factory import ProofServiceFactory, close_factory, get_factory

logger = logging.getLogger("run_due_seeds")


def parse_now(value: str):
    """ISO timestamp; naive values are taken as UTC"""
    parsed = date_parser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def list_due(factory: ProofServiceFactory, now=None):
    """Print due seeds without running them"""
    now = now or datetime.now(timezone.utc)
    seeds = await factory.repository.list_due_seeds(now)

    print(f"{len(seeds)} seed(s) due at {now.isoformat()}")
    for seed in seeds:
        print(
            f"  {seed.seed_id} | {seed.cadence.value} | {len(seed.to_address)} recipient(s) "
            f"| due {seed.next_run_at.isoformat()} | {seed.name}"
        )
    return seeds


async def run_tick(factory: ProofServiceFactory, now=None, as_json: bool = False):
    """Run one scheduler tick and print the report"""
    report = await factory.runner.tick(now)

    if as_json:
        print(json.dumps(report.model_dump(mode="json"), indent=2))
    else:
        print(
            f"Checked at {report.checked_at.isoformat()}: {report.seeds_due} due, "
            f"{report.seeds_run} run, {report.seeds_skipped} skipped, {report.seeds_failed} failed; "
            f"{report.proofs_created} postcard(s) created, {report.recipient_failures} recipient failure(s)"
        )
    return report


async def main():
    """Main entry"""
    parser = argparse.ArgumentParser(description="Run due postcard seeds once")
    parser.add_argument("--now", type=parse_now, help="Override the current time (ISO 8601)")
    parser.add_argument("--dry-run", action="store_true", help="List due seeds without running them")
    parser.add_argument("--json", action="store_true", help="Print the tick report as JSON")
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(settings.logging)

    try:
        factory = await get_factory()

        if args.dry_run:
            await list_due(factory, args.now)
            return

        report = await run_tick(factory, args.now, args.json)
        if report.seeds_failed:
            sys.exit(2)

    except Exception as e:
        logger.error(f"Scheduler tick failed: {e}", exc_info=True)
        sys.exit(1)

    finally:
        await close_factory()


if __name__ == "__main__":
    asyncio.run(main())

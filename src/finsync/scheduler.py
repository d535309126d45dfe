"""
Periodic sync trigger - run from cron or any external scheduler.

    python -m finsync.scheduler sweep [--limit N]
    python -m finsync.scheduler cleanup [--days N]
"""

import argparse
import asyncio
import logging
import sys
from typing import Sequence

from finsync.config import get_settings
from finsync.core.logging import setup_logging
from finsync.db.session import AsyncSessionLocal, async_engine
from finsync.observability.metrics import MetricsRegistry
from finsync.plaid.client import PlaidFeedClient, UpstreamFeed
from finsync.services.audit import DatabaseAuditSink
from finsync.sync.jobs import SyncJobService

logger = logging.getLogger(__name__)


async def run_sweep(limit: int, feed: UpstreamFeed | None = None, session_factory=None) -> dict:
    """Process every due sync job once, across all users."""
    session_factory = session_factory or AsyncSessionLocal
    settings = get_settings()
    async with session_factory() as db:
        service = SyncJobService(
            db,
            feed or PlaidFeedClient(settings),
            settings=settings,
            metrics=MetricsRegistry(),
            audit=DatabaseAuditSink(session_factory),
        )
        result = await service.process_due_jobs(limit=limit)
    logger.info(f"Sweep finished: queued={result.queued} processed={result.processed}")
    return {"queued": result.queued, "processed": result.processed}


async def run_cleanup(days: int, session_factory=None) -> int:
    """Delete terminal sync jobs older than ``days`` days."""
    session_factory = session_factory or AsyncSessionLocal
    async with session_factory() as db:
        # Cleanup never calls the feed.
        service = SyncJobService(db, feed=None, settings=get_settings())
        return await service.cleanup_terminal_jobs(older_than_days=days)


async def _run(args: argparse.Namespace) -> None:
    try:
        if args.command == "sweep":
            await run_sweep(args.limit)
        else:
            await run_cleanup(args.days)
    finally:
        await async_engine.dispose()


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="finsync periodic sync jobs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sweep = subparsers.add_parser("sweep", help="Process due sync jobs for all users")
    sweep.add_argument(
        "--limit",
        type=int,
        default=settings.sync_sweep_batch_size,
        help="Maximum number of jobs to process",
    )

    cleanup = subparsers.add_parser("cleanup", help="Delete old completed/failed sync jobs")
    cleanup.add_argument(
        "--days",
        type=int,
        default=settings.sync_job_retention_days,
        help="Retention window in days",
    )

    args = parser.parse_args(argv)
    setup_logging(settings.log_level)

    try:
        asyncio.run(_run(args))
    except Exception as exc:
        logger.error(
            f"Scheduler command '{args.command}' failed",
            extra={"error_type": type(exc).__name__},
        )
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Retention reaper for aged print jobs and their payloads.

The reaper runs periodically, deletes jobs older than the retention window in
bounded batches, and removes each deleted job's payload once no remaining job
references it.
"""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime, timedelta, timezone

from printbroker.broker import SessionFactory
from printbroker.config import get_settings
from printbroker.db import close_db, get_session_context, init_db
from printbroker.db.repository import JobRepository
from printbroker.exceptions import ConfigError
from printbroker.observability.logging import setup_logging
from printbroker.observability.metrics import get_metrics
from printbroker.storage import BlobStore, get_blob_store
from printbroker.types.job import CleanupResult

logger = logging.getLogger(__name__)


class Reaper:
    """
    Retention reaper for print jobs.

    Each run:
    1. Deletes up to batch_size jobs created before the cutoff
    2. Deletes the payloads of those jobs that nothing references any more
    3. Repeats while a batch came back full
    """

    def __init__(
        self,
        blob_store: BlobStore | None = None,
        session_factory: SessionFactory = get_session_context,
        max_age_days: int | None = None,
        batch_size: int | None = None,
        interval_seconds: int | None = None,
    ):
        """
        Initialize the reaper.

        Args:
            blob_store: Store holding job payloads.
            session_factory: Async context manager yielding a session.
            max_age_days: Retention window in days.
            batch_size: Maximum jobs deleted per batch.
            interval_seconds: Seconds between reaper runs.
        """
        settings = get_settings()

        self._blob_store = blob_store or get_blob_store()
        self._session_factory = session_factory
        self.max_age_days = (
            max_age_days if max_age_days is not None else settings.cleanup_max_age_days
        )
        self.batch_size = batch_size or settings.cleanup_batch_size
        self.interval = interval_seconds or settings.reaper_interval_seconds

        self._running = False
        self._stopped = asyncio.Event()
        self._metrics = get_metrics()

    def cutoff(self, now: datetime | None = None) -> datetime:
        """Get the instant before which jobs are considered aged."""
        now = now or datetime.now(timezone.utc)
        return now - timedelta(days=self.max_age_days)

    async def start(self) -> None:
        """Start the reaper loop."""
        logger.info(
            f"Reaper starting with interval {self.interval}s",
            extra={"max_age_days": self.max_age_days, "batch_size": self.batch_size}
        )
        self._running = True
        self._stopped.clear()

        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"Error in reaper loop: {e}")

            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

        logger.info("Reaper stopped")

    async def stop(self) -> None:
        """Stop the reaper."""
        logger.info("Reaper stopping")
        self._running = False
        self._stopped.set()

    async def run_once(self) -> CleanupResult:
        """
        Run one full sweep (for testing or cron-style execution).

        Returns:
            Totals across all batches of the sweep.
        """
        cutoff = self.cutoff()
        total = await self.sweep(cutoff)
        total.deleted_blobs += await self.sweep_orphan_blobs(cutoff)

        if total.deleted_jobs or total.deleted_blobs:
            logger.info(
                f"Cleaned up {total.deleted_jobs} jobs and {total.deleted_blobs} blobs",
                extra={"cutoff": cutoff.isoformat()}
            )
        return total

    async def sweep(self, cutoff: datetime | None = None) -> CleanupResult:
        """
        Invoke run_batch until it reports no more work.

        Each batch runs in its own transaction, so a sweep never holds
        one open for more than batch_size deletions.
        """
        cutoff = cutoff or self.cutoff()
        total = CleanupResult()
        while True:
            result = await self.run_batch(cutoff)
            total.deleted_jobs += result.deleted_jobs
            total.deleted_blobs += result.deleted_blobs
            if not result.has_more:
                return total
            # Yield between batches
            await asyncio.sleep(0)

    async def run_batch(self, cutoff: datetime) -> CleanupResult:
        """
        Delete one bounded batch of aged jobs and their unreferenced payloads.

        Payloads are deleted only after the job deletions commit. A payload
        that fails to delete is logged and left for a later run.

        Args:
            cutoff: Jobs created strictly before this instant are deleted.

        Returns:
            What the batch deleted, and whether another batch is needed.
        """
        async with self._session_factory() as session:
            repo = JobRepository(session)
            storage_ids = await repo.delete_jobs_created_before(cutoff, self.batch_size)
            referenced = await repo.get_referenced_storage_ids(storage_ids)

        orphaned = set(storage_ids) - referenced
        deleted_blobs = 0
        for storage_id in sorted(orphaned):
            try:
                if self._blob_store.delete(storage_id):
                    deleted_blobs += 1
            except (OSError, ValueError) as e:
                logger.warning(
                    f"Failed to delete blob: {e}",
                    extra={"storage_id": storage_id}
                )

        self._metrics.record_cleanup(len(storage_ids), deleted_blobs)

        return CleanupResult(
            deleted_jobs=len(storage_ids),
            deleted_blobs=deleted_blobs,
            has_more=len(storage_ids) >= self.batch_size,
        )

    async def sweep_orphan_blobs(self, cutoff: datetime) -> int:
        """
        Delete aged blobs that no job references.

        These are left behind by uploads whose job was never created, or by
        payload deletions that failed in an earlier batch. Aged partial
        uploads are removed too but not counted.

        Returns:
            Number of blobs deleted.
        """
        try:
            self._blob_store.delete_stale_partials(cutoff, self.batch_size)
        except OSError as e:
            logger.warning(f"Failed to delete stale partial uploads: {e}")

        candidates = self._blob_store.list_blobs_older_than(cutoff, self.batch_size)
        if not candidates:
            return 0

        async with self._session_factory() as session:
            referenced = await JobRepository(session).get_referenced_storage_ids(candidates)

        deleted = 0
        for storage_id in candidates:
            if storage_id in referenced:
                continue
            try:
                if self._blob_store.delete(storage_id):
                    deleted += 1
            except OSError as e:
                logger.warning(
                    f"Failed to delete orphaned blob: {e}",
                    extra={"storage_id": storage_id}
                )

        if deleted:
            self._metrics.record_cleanup(0, deleted)
        return deleted


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="printbroker-reaper",
        description="Delete aged print jobs and their unreferenced payloads.",
    )
    parser.add_argument(
        "--max-age-days",
        type=int,
        default=None,
        help="Retention window in days (default from CLEANUP_MAX_AGE_DAYS)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sweep and exit",
    )
    return parser


async def run_async(max_age_days: int | None = None, once: bool = False) -> None:
    """Run the reaper asynchronously."""
    setup_logging()
    await init_db()

    reaper = Reaper(max_age_days=max_age_days)

    try:
        if once:
            await reaper.run_once()
            return

        # Handle shutdown signals
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda: asyncio.create_task(reaper.stop())
            )

        await reaper.start()
    finally:
        await close_db()


def main(argv: list[str] | None = None) -> int:
    """Reaper entry point."""
    args = build_parser().parse_args(argv)

    try:
        asyncio.run(run_async(max_age_days=args.max_age_days, once=args.once))
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    return 0


def run() -> None:
    """Run the reaper."""
    sys.exit(main())


if __name__ == "__main__":
    run()

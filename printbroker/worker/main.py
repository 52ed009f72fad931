"""
Worker process for printing jobs.

A worker serves one client identity. It waits for pending jobs, claims the
oldest one, prints it and records the outcome, one job at a time.
"""

import argparse
import asyncio
import logging
import signal
import sys
import time

import httpx

from printbroker.broker import ClaimBroker
from printbroker.config import get_settings
from printbroker.constants import SPAN_EXECUTE_JOB, JobStatus
from printbroker.db import close_db, init_db
from printbroker.exceptions import ClaimRace, ConfigError, JobFailure
from printbroker.observability.logging import bind_context, clear_context, setup_logging
from printbroker.observability.metrics import get_metrics
from printbroker.observability.tracing import get_tracer, setup_tracing
from printbroker.printing.pipeline import PrintPipeline
from printbroker.printing.resolver import parse_printer_id
from printbroker.storage import get_url_signer
from printbroker.types.events import PendingJobChange
from printbroker.types.job import ClaimedJob
from printbroker.worker.notifier import PendingJobNotifier

logger = logging.getLogger(__name__)


class PrintWorker:
    """
    Print worker for a single client identity.

    Features:
    - Reacts to pending-job notifications instead of tight polling
    - At most one job in flight, guarded by a single-slot lock
    - Drains all pending work before going idle
    - Job failures are recorded on the job, never raised
    - Graceful shutdown on SIGTERM/SIGINT
    """

    def __init__(
        self,
        client_id: str,
        broker: ClaimBroker,
        pipeline: PrintPipeline,
        notifier: PendingJobNotifier | None = None,
        log_only: bool = False,
        drain_pause: float | None = None,
    ):
        """
        Initialize the worker.

        Args:
            client_id: The client identity whose jobs this worker prints.
            broker: Claim and report operations.
            pipeline: Fetch-and-print pipeline.
            notifier: Source of pending-job changes.
            log_only: Log jobs and mark them completed without printing.
            drain_pause: Seconds to wait between jobs while draining.
        """
        settings = get_settings()

        self.client_id = client_id
        self.log_only = log_only
        self.drain_pause = (
            drain_pause if drain_pause is not None else settings.worker_drain_pause_seconds
        )

        self._broker = broker
        self._pipeline = pipeline
        self._notifier = notifier or PendingJobNotifier(broker, client_id)
        self._busy = asyncio.Lock()
        self._unsubscribe = None
        self._metrics = get_metrics()

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    async def start(self) -> None:
        """Start the worker and run until stopped."""
        logger.info(
            "Worker starting",
            extra={"client_id": self.client_id, "log_only": self.log_only}
        )

        self._unsubscribe = self._notifier.subscribe(self._on_change)
        try:
            await self._notifier.start()
        finally:
            self._unsubscribe()
            # Let an in-flight job record its outcome
            async with self._busy:
                pass

        logger.info("Worker stopped", extra={"client_id": self.client_id})

    async def stop(self) -> None:
        """Stop the worker gracefully."""
        logger.info("Worker stopping", extra={"client_id": self.client_id})
        await self._notifier.stop()

    async def _on_change(self, change: PendingJobChange) -> None:
        if self.busy:
            return
        await self.drain()
        # A job submitted while draining may already have been seen
        self._notifier.rearm()

    async def drain(self) -> int:
        """
        Process pending jobs until none remain.

        Returns immediately if another drain is already running.

        Returns:
            Number of jobs processed.
        """
        if self.busy:
            return 0

        processed = 0
        async with self._busy:
            while True:
                try:
                    job = await self._claim_next()
                except ClaimRace as e:
                    logger.debug(str(e), extra={"client_id": self.client_id})
                    continue
                except Exception as e:
                    logger.exception(
                        f"Error claiming next job: {e}",
                        extra={"client_id": self.client_id}
                    )
                    break

                if job is None:
                    break

                await self.process(job)
                processed += 1

                if self.drain_pause:
                    await asyncio.sleep(self.drain_pause)

        if processed:
            logger.info(
                f"Drained {processed} jobs",
                extra={"client_id": self.client_id}
            )
        return processed

    async def _claim_next(self) -> ClaimedJob | None:
        """
        Claim the oldest pending job for this client.

        Returns:
            The claimed job, or None if nothing is pending.

        Raises:
            ClaimRace: Another worker claimed the candidate first.
        """
        job_id = await self._broker.oldest_pending_for_claim(self.client_id)
        if job_id is None:
            return None

        job = await self._broker.claim(job_id)
        self._metrics.record_claim(self.client_id, won=job is not None)
        if job is None:
            raise ClaimRace(job_id)
        return job

    async def process(self, job: ClaimedJob) -> JobStatus:
        """
        Print a claimed job and record its terminal status.

        Args:
            job: The claimed job.

        Returns:
            The status recorded for the job.
        """
        start_time = time.time()
        job_id = job.job_id
        bind_context(job_id=str(job_id))

        status = JobStatus.COMPLETED
        error = None

        try:
            with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
                span.set_attribute("job_id", str(job_id))
                span.set_attribute("client_id", job.client_id)
                span.set_attribute("printer_id", job.printer_id)

                printer = parse_printer_id(job.printer_id)
                logger.info(
                    "Printing job",
                    extra={
                        "job_id": str(job_id),
                        "printer_id": job.printer_id,
                        "destination": printer.normalized_name,
                        "protocol": printer.protocol,
                        "options": job.options,
                    }
                )

                if self.log_only:
                    logger.info(
                        "Log-only mode, skipping print",
                        extra={"job_id": str(job_id), "location": job.location}
                    )
                else:
                    await self._pipeline.run(job.location, printer, job.options)

        except JobFailure as e:
            status = JobStatus.FAILED
            error = str(e)
        except Exception as e:
            logger.exception(
                "Exception executing job",
                extra={"job_id": str(job_id), "error": str(e)}
            )
            status = JobStatus.FAILED
            error = f"Worker exception: {e}"

        duration = time.time() - start_time

        if status == JobStatus.COMPLETED:
            logger.info(
                "Job completed successfully",
                extra={"job_id": str(job_id), "duration": f"{duration:.2f}s"}
            )
        else:
            logger.warning(
                "Job failed",
                extra={"job_id": str(job_id), "error": error}
            )

        try:
            await self._broker.report(job_id, status, error=error)
        except Exception:
            logger.exception("Failed to record job status", extra={"job_id": str(job_id)})

        self._metrics.record_job_finished(
            client_id=job.client_id,
            status=status.value,
            duration_seconds=duration,
        )
        clear_context()
        return status


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="printbroker-worker",
        description="Print pending jobs for one client identity.",
    )
    parser.add_argument("client_id", help="Client identity whose jobs to print")
    parser.add_argument(
        "--log",
        action="store_true",
        dest="log_only",
        help="Log jobs and mark them completed without printing",
    )
    return parser


async def run_async(client_id: str, log_only: bool = False) -> None:
    """Run the worker asynchronously."""
    setup_logging()
    setup_tracing()
    await init_db()

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=None))
    broker = ClaimBroker(get_url_signer())
    worker = PrintWorker(
        client_id,
        broker,
        PrintPipeline(http_client),
        log_only=log_only,
    )

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(worker.stop())
        )

    try:
        await worker.start()
    finally:
        await http_client.aclose()
        await close_db()


def main(argv: list[str] | None = None) -> int:
    """
    Worker entry point.

    Returns:
        0 on clean shutdown, 1 on missing configuration.
    """
    args = build_parser().parse_args(argv)

    try:
        asyncio.run(run_async(args.client_id, log_only=args.log_only))
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    return 0


def run() -> None:
    """Run the worker."""
    sys.exit(main())


if __name__ == "__main__":
    run()

"""
Pending-job notifications for workers.

Subscribers register a callback and are called whenever the oldest pending
job for their client changes. The view is re-evaluated on a short interval,
or immediately after ``poke()``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from uuid import UUID

from printbroker.broker import ClaimBroker
from printbroker.config import get_settings
from printbroker.types.events import PendingJobChange

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[PendingJobChange], Awaitable[None]]


class PendingJobNotifier:
    """
    Watches the oldest-pending job for one client.

    Callbacks run as tasks so a slow subscriber never delays the next poll.
    Only changes to a non-empty view are delivered.
    """

    def __init__(
        self,
        broker: ClaimBroker,
        client_id: str,
        poll_interval: float | None = None,
    ):
        """
        Initialize the notifier.

        Args:
            broker: Source of the oldest-pending view.
            client_id: The client identity to watch.
            poll_interval: Seconds between evaluations.
        """
        settings = get_settings()

        self._broker = broker
        self.client_id = client_id
        self.poll_interval = poll_interval or settings.worker_poll_interval_seconds

        self._callbacks: list[ChangeCallback] = []
        self._last_seen: UUID | None = None
        self._wakeup = asyncio.Event()
        self._stopped = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """
        Register interest in the oldest-pending view.

        Returns:
            A function that removes the subscription.
        """
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def poke(self) -> None:
        """Re-evaluate the view now instead of at the next interval."""
        self._wakeup.set()

    def rearm(self) -> None:
        """Forget the last delivered view so the next evaluation notifies again."""
        self._last_seen = None
        self._wakeup.set()

    async def start(self) -> None:
        """Run the evaluation loop until stop() is called."""
        logger.info(
            "Notifier starting",
            extra={"client_id": self.client_id, "poll_interval": self.poll_interval}
        )

        while not self._stopped.is_set():
            try:
                await self.check()
            except Exception as e:
                logger.exception(
                    f"Error evaluating pending jobs: {e}",
                    extra={"client_id": self.client_id}
                )

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
            self._wakeup.clear()

        logger.info("Notifier stopped", extra={"client_id": self.client_id})

    async def stop(self) -> None:
        """Stop the loop. Callbacks already running are left to finish."""
        self._stopped.set()
        self._wakeup.set()

    async def check(self) -> PendingJobChange | None:
        """
        Evaluate the view once and notify subscribers if it changed.

        Returns:
            The change delivered, or None.
        """
        job_id = await self._broker.oldest_pending_for_claim(self.client_id)
        if job_id == self._last_seen:
            return None

        self._last_seen = job_id
        if job_id is None:
            return None

        change = PendingJobChange(client_id=self.client_id, job_id=job_id)
        logger.debug(
            "Oldest pending job changed",
            extra={"client_id": self.client_id, "job_id": str(job_id)}
        )
        for callback in list(self._callbacks):
            task = asyncio.create_task(callback(change))
            self._tasks.add(task)
            task.add_done_callback(self._on_callback_done)
        return change

    def _on_callback_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Pending job subscriber failed",
                exc_info=task.exception(),
                extra={"client_id": self.client_id}
            )

import asyncio
import logging

from invoice_notifier.api.v1.metrics import QUEUE_DEPTH
from invoice_notifier.domain.states import JobState
from invoice_notifier.services.queue import QueueEngine

logger = logging.getLogger(__name__)


class SchedulerService:
    """Periodic maintenance: reaps expired leases and refreshes the queue depth gauge.

    Reaping locks lease rows with SKIP LOCKED, so running it on several
    instances at once is safe.
    """

    def __init__(self, queue: QueueEngine, interval: float = 10, max_deliveries: int | None = None):
        self.queue = queue
        self.interval = interval
        self.max_deliveries = max_deliveries
        self._running = False
        self._task = None

    async def start(self):
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Scheduler service started.")

    async def stop(self):
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Scheduler service stopped.")

    async def tick(self) -> int:
        """One maintenance pass. Returns the number of jobs recovered from expired leases."""
        reaped = await self.queue.requeue_expired(max_deliveries=self.max_deliveries)
        if reaped:
            logger.info("Reaped %d job(s) with expired leases", reaped)

        counts = await self.queue.counts()
        for state in JobState:
            QUEUE_DEPTH.labels(state=str(state)).set(counts.get(str(state), 0))
        return reaped

    async def _loop(self):
        while self._running:
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Error in scheduler ticker: {e}", exc_info=True)

            await asyncio.sleep(self.interval)

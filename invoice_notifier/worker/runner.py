import asyncio
import logging
from typing import Optional
from uuid import UUID

from invoice_notifier.domain.errors import JobError, LeaseError
from invoice_notifier.domain.models import ClaimedJob
from invoice_notifier.processors.router import process_job
from invoice_notifier.providers.registry import ProviderRegistry
from invoice_notifier.services.queue import QueueEngine

logger = logging.getLogger(__name__)


class QueueWorker:
    """Single logical consumer: claims one job at a time and runs it to a terminal state."""

    def __init__(
        self,
        queue: QueueEngine,
        registry: ProviderRegistry,
        worker_id: str,
        poll_interval: float = 1.0,
        lease_duration: int = 60,
        heartbeat_interval: float = 10.0,
    ):
        self.queue = queue
        self.registry = registry
        self.worker_id = worker_id
        self.poll_interval = poll_interval
        self.lease_duration = lease_duration
        self.heartbeat_interval = heartbeat_interval
        self.running = False
        self._shutdown_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        self._task = asyncio.create_task(self.run())

    async def run(self):
        self.running = True
        self._shutdown_event.clear()
        logger.info("Worker %s started on queue %s", self.worker_id, self.queue.name)

        try:
            while self.running:
                try:
                    processed = await self.run_once()
                    if not processed:
                        await self._idle(self.poll_interval)
                except Exception as e:
                    logger.exception("Error in worker loop for %s: %s", self.worker_id, e)
                    await self._idle(5.0)
        finally:
            logger.info("Worker %s stopped", self.worker_id)

    async def stop(self):
        self.running = False
        self._shutdown_event.set()
        if self._task:
            await self._task
            self._task = None

    async def _idle(self, seconds: float):
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run_once(self) -> bool:
        """Claim and process at most one job. Returns whether a job was claimed."""
        job = await self.queue.claim(self.worker_id, lease_duration=self.lease_duration)
        if not job:
            return False

        logger.info("Claimed job %s (%s), delivery %d", job.id, job.name, job.attempts)
        await self.process(job)
        return True

    async def process(self, job: ClaimedJob):
        heartbeat_task = asyncio.create_task(self._heartbeat_loop(job.id, job.lease_token))

        try:
            result = await process_job(job, self.queue, self.registry)
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            logger.error("Job %s failed: %s", job.id, reason)
            await self._report(self.queue.fail(job.id, reason, lease_token=job.lease_token), job.id, "failure")
        else:
            await self._report(
                self.queue.complete(job.id, result.to_wire(), lease_token=job.lease_token),
                job.id,
                "completion",
            )
        finally:
            heartbeat_task.cancel()
            try:
                await heartbeat_task
            except asyncio.CancelledError:
                pass

    async def _report(self, outcome, job_id: UUID, what: str):
        try:
            await outcome
        except JobError as e:
            # Lease was reaped and the job handed out again; the new delivery owns it
            logger.error("Could not record %s for job %s: %s", what, job_id, e)
        else:
            logger.info("Recorded %s for job %s", what, job_id)

    async def _heartbeat_loop(self, job_id: UUID, lease_token: UUID):
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.queue.heartbeat(job_id, lease_token, extend_seconds=self.lease_duration)
            except LeaseError as e:
                logger.warning("Heartbeat for job %s rejected: %s", job_id, e)
                return
            except Exception as e:
                logger.error("Heartbeat for job %s errored: %s", job_id, e, exc_info=True)
            else:
                logger.debug("Renewed lease for job %s", job_id)

from dataclasses import dataclass
from uuid import UUID

from invoice_notifier.domain.jobs import JobData
from invoice_notifier.providers.registry import ProviderRegistry
from invoice_notifier.services.queue import QueueEngine


@dataclass
class JobContext:
    """What a processor sees of the job it is running.

    Log lines and progress go straight to the queue store, so a concurrent
    ``get_job`` observes them while the job is still active.
    """

    job_id: UUID
    name: str
    data: JobData
    queue: QueueEngine
    registry: ProviderRegistry

    async def log(self, message: str) -> None:
        await self.queue.log(self.job_id, message)

    async def update_progress(self, progress: int) -> None:
        await self.queue.update_progress(self.job_id, progress)

"""Queue engine: the only owner of job lifecycle and durability.

Every operation runs in its own transaction against the durable store, so
progress and log lines written by a running processor are visible to
``get_job`` immediately.
"""

import logging
from typing import Any, Mapping, Optional, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from invoice_notifier.commands.claim_job import claim_job
from invoice_notifier.commands.complete_job import complete_job
from invoice_notifier.commands.enqueue_job import enqueue_job
from invoice_notifier.commands.fail_job import fail_job
from invoice_notifier.commands.heartbeat import heartbeat
from invoice_notifier.commands.progress import append_log, update_progress
from invoice_notifier.commands.queries import count_by_state, get_job_snapshot, list_jobs
from invoice_notifier.commands.requeue_expired import requeue_expired_jobs
from invoice_notifier.domain.jobs import BaseJobData, JobData, parse_job_data
from invoice_notifier.domain.models import ClaimedJob, JobHandle, JobSnapshot
from invoice_notifier.domain.states import JobState

logger = logging.getLogger(__name__)


class QueueEngine:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], name: str = "InvoiceNotifierQueue"):
        self.name = name
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    async def enqueue(self, request: Union[JobData, Mapping[str, Any]]) -> JobHandle:
        """Validate and persist a job in WAITING state.

        Raises:
            JobValidationError: before anything is written.
        """
        data = request if isinstance(request, BaseJobData) else parse_job_data(request)

        async with self._session_factory() as session:
            async with session.begin():
                job = await enqueue_job(session, data)

        logger.info("Enqueued job %s (%s) on %s", job.id, job.name, self.name)
        return JobHandle(id=job.id, name=job.name, kind=job.kind)

    async def get_job(self, job_id: Union[UUID, str]) -> Optional[JobSnapshot]:
        """Current snapshot including logs, or None for an unknown id."""
        parsed = _parse_job_id(job_id)
        if parsed is None:
            return None
        async with self._session_factory() as session:
            return await get_job_snapshot(session, parsed)

    async def list_jobs(self, state: Optional[JobState] = None, limit: int = 50, offset: int = 0) -> list[JobSnapshot]:
        async with self._session_factory() as session:
            return await list_jobs(session, state=state, limit=limit, offset=offset)

    async def counts(self) -> dict[str, int]:
        async with self._session_factory() as session:
            return await count_by_state(session)

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    async def claim(self, worker_id: str, lease_duration: Optional[int] = None) -> Optional[ClaimedJob]:
        async with self._session_factory() as session:
            async with session.begin():
                claimed = await claim_job(session, worker_id, lease_duration=lease_duration)
                if not claimed:
                    return None
                job, lease = claimed
                return ClaimedJob(
                    id=job.id,
                    name=job.name,
                    kind=job.kind,
                    data=dict(job.data),
                    lease_token=lease.lease_token,
                    expires_at=lease.expires_at,
                    attempts=job.attempts,
                )

    async def heartbeat(self, job_id: UUID, lease_token: UUID, extend_seconds: int = 60):
        async with self._session_factory() as session:
            async with session.begin():
                return await heartbeat(session, job_id, lease_token, extend_seconds=extend_seconds)

    async def update_progress(self, job_id: UUID, progress: int) -> int:
        async with self._session_factory() as session:
            async with session.begin():
                return await update_progress(session, job_id, progress)

    async def log(self, job_id: UUID, message: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await append_log(session, job_id, message)

    async def complete(self, job_id: UUID, result: Optional[dict[str, Any]], lease_token: Optional[UUID] = None) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await complete_job(session, job_id, result, lease_token=lease_token)

    async def fail(self, job_id: UUID, reason: str, lease_token: Optional[UUID] = None) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await fail_job(session, job_id, reason, lease_token=lease_token)

    async def requeue_expired(self, **kwargs) -> int:
        async with self._session_factory() as session:
            async with session.begin():
                return await requeue_expired_jobs(session, **kwargs)


def _parse_job_id(job_id: Union[UUID, str]) -> Optional[UUID]:
    if isinstance(job_id, UUID):
        return job_id
    try:
        return UUID(str(job_id))
    except ValueError:
        return None

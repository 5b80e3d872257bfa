from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_notifier.db.models import Job, JobEventLog
from invoice_notifier.domain.states import JobState, JobEvent
from invoice_notifier.domain.errors import JobNotFoundError, InvalidJobStateError
from invoice_notifier.commands.complete_job import release_lease, observe_finish
from invoice_notifier.utils.timestamps import utcnow

async def fail_job(
    session: AsyncSession,
    job_id: UUID,
    error: str,
    lease_token: Optional[UUID] = None
) -> Job:
    """
    Marks a job as FAILED with a human-readable reason.
    Failed is terminal: there is no automatic retry.
    """
    now = utcnow()

    stmt = select(Job).where(Job.id == job_id).with_for_update()
    job = (await session.execute(stmt)).scalar_one_or_none()

    if not job:
        raise JobNotFoundError(job_id)

    if JobState(job.state).is_terminal:
        raise InvalidJobStateError(job.state, JobState.FAILED)

    await release_lease(session, job_id, lease_token, JobState.FAILED)

    job.state = JobState.FAILED
    job.failed_reason = error
    job.result = None
    job.finished_on = now
    job.updated_at = now

    observe_finish(job, "failed", now)

    session.add(JobEventLog(
        job_id=job.id,
        event_type=JobEvent.FAILED,
        timestamp=now,
        meta={
            "error": error,
            "delivery": job.attempts,
            "lease_token": str(lease_token) if lease_token else None
        }
    ))

    await session.flush()
    return job

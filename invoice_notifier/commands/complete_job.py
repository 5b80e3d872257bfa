from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_notifier.db.models import Job, JobLease, JobEventLog
from invoice_notifier.domain.states import JobState, JobEvent
from invoice_notifier.api.v1.metrics import JOB_DURATION, JOB_OUTCOMES
from invoice_notifier.domain.errors import JobNotFoundError, InvalidJobStateError, LeaseNotFoundError
from invoice_notifier.utils.timestamps import as_utc, utcnow

async def complete_job(
    session: AsyncSession,
    job_id: UUID,
    result_data: Optional[dict[str, Any]],
    lease_token: Optional[UUID] = None
) -> Job:
    """
    Marks an ACTIVE job as COMPLETED and stores its return value.
    Verifies the lease if a token is provided, then releases it.
    """
    now = utcnow()

    stmt = select(Job).where(Job.id == job_id).with_for_update()
    job = (await session.execute(stmt)).scalar_one_or_none()

    if not job:
        raise JobNotFoundError(job_id)

    if job.state != JobState.ACTIVE:
        raise InvalidJobStateError(job.state, JobState.COMPLETED)

    await release_lease(session, job_id, lease_token, JobState.COMPLETED)

    job.state = JobState.COMPLETED
    job.result = result_data
    job.failed_reason = None
    job.finished_on = now
    job.updated_at = now

    observe_finish(job, "completed", now)

    session.add(JobEventLog(
        job_id=job.id,
        event_type=JobEvent.COMPLETED,
        timestamp=now,
        meta={"lease_token": str(lease_token) if lease_token else None}
    ))

    await session.flush()
    return job

async def release_lease(session: AsyncSession, job_id: UUID, lease_token: Optional[UUID], target) -> None:
    if lease_token:
        lease_stmt = select(JobLease).where(
            JobLease.job_id == job_id,
            JobLease.lease_token == lease_token
        )
        lease_obj = (await session.execute(lease_stmt)).scalar_one_or_none()
        if not lease_obj:
            # Lease was reaped and the job redelivered: this worker lost it
            raise LeaseNotFoundError(f"Lease for job {job_id} invalid or lost; cannot move it to {target}")
        await session.delete(lease_obj)
    else:
        await session.execute(
            delete(JobLease).where(JobLease.job_id == job_id)
        )

def observe_finish(job: Job, result: str, now) -> None:
    processed_on = as_utc(job.processed_on)
    if processed_on:
        duration = (now - processed_on).total_seconds()
        if duration > 0:
            JOB_DURATION.observe(duration)
    JOB_OUTCOMES.labels(kind=job.kind, provider=job.provider.lower(), result=result).inc()

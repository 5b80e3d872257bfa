from typing import Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_notifier.db.models import Job, JobLog
from invoice_notifier.domain.models import JobSnapshot
from invoice_notifier.domain.states import JobState
from invoice_notifier.utils.timestamps import as_utc

async def get_job_snapshot(session: AsyncSession, job_id: UUID) -> Optional[JobSnapshot]:
    job = await session.get(Job, job_id)
    if not job:
        return None
    return to_snapshot(job, await get_job_logs(session, job_id))

async def get_job_logs(session: AsyncSession, job_id: UUID) -> list[str]:
    stmt = select(JobLog).where(JobLog.job_id == job_id).order_by(JobLog.id.asc())
    rows = (await session.execute(stmt)).scalars().all()
    return [f"{as_utc(row.timestamp).isoformat()} {row.message}" for row in rows]

async def list_jobs(
    session: AsyncSession,
    state: Optional[JobState] = None,
    limit: int = 50,
    offset: int = 0
) -> list[JobSnapshot]:
    """Job history, newest first. Logs are not included."""
    stmt = select(Job).order_by(Job.created_at.desc()).limit(limit).offset(offset)
    if state is not None:
        stmt = stmt.where(Job.state == state)
    jobs = (await session.execute(stmt)).scalars().all()
    return [to_snapshot(job) for job in jobs]

async def count_by_state(session: AsyncSession) -> dict[str, int]:
    stmt = select(Job.state, func.count()).group_by(Job.state)
    counts = {str(state): 0 for state in JobState}
    for state, n in (await session.execute(stmt)).all():
        counts[str(state)] = n
    return counts

def to_snapshot(job: Job, logs: Optional[list[str]] = None) -> JobSnapshot:
    return JobSnapshot(
        id=job.id,
        name=job.name,
        kind=job.kind,
        state=JobState(job.state),
        progress=job.progress,
        data=dict(job.data or {}),
        returnvalue=job.result,
        failed_reason=job.failed_reason,
        attempts=job.attempts,
        created_at=as_utc(job.created_at),
        processed_on=as_utc(job.processed_on),
        finished_on=as_utc(job.finished_on),
        logs=logs or [],
    )

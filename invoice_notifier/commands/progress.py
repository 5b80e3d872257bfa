import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_notifier.db.models import Job, JobLog
from invoice_notifier.domain.errors import JobNotFoundError, InvalidJobStateError
from invoice_notifier.domain.states import JobState
from invoice_notifier.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

async def update_progress(session: AsyncSession, job_id: UUID, progress: int) -> int:
    """
    Advances progress of an ACTIVE job. Progress never moves backwards:
    a lower value than the stored one is ignored.
    Returns the stored progress.
    """
    if not 0 <= progress <= 100:
        raise ValueError(f"Progress must be between 0 and 100, got {progress}")

    stmt = select(Job).where(Job.id == job_id).with_for_update()
    job = (await session.execute(stmt)).scalar_one_or_none()
    if not job:
        raise JobNotFoundError(job_id)

    if job.state != JobState.ACTIVE:
        raise InvalidJobStateError(job.state, "progress update")

    if progress < job.progress:
        logger.debug("Ignoring progress %s < %s for job %s", progress, job.progress, job_id)
        return job.progress

    job.progress = progress
    job.updated_at = utcnow()
    await session.flush()
    return job.progress

async def append_log(session: AsyncSession, job_id: UUID, message: str) -> JobLog:
    """Appends a timestamped line to the job log. Allowed in every state."""
    exists = await session.scalar(select(Job.id).where(Job.id == job_id))
    if not exists:
        raise JobNotFoundError(job_id)

    entry = JobLog(job_id=job_id, timestamp=utcnow(), message=message)
    session.add(entry)
    await session.flush()
    return entry

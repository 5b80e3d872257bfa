from datetime import timedelta
from typing import Optional
from uuid import uuid4
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_notifier.db.models import Job, JobLease, JobEventLog
from invoice_notifier.domain.states import JobState, JobEvent
from invoice_notifier.api.v1.metrics import JOB_START_DELAY
from invoice_notifier.settings import settings
from invoice_notifier.utils.timestamps import as_utc, utcnow

logger = logging.getLogger(__name__)

async def claim_job(
    session: AsyncSession,
    worker_id: str,
    lease_duration: Optional[int] = None
) -> Optional[tuple[Job, JobLease]]:
    """
    Atomically claims the oldest WAITING job that is available now.

    The job moves to ACTIVE and a lease is created for the worker. Rows are
    locked with SKIP LOCKED so workers sharing the store never claim the
    same job twice.
    """
    duration = lease_duration if lease_duration is not None else settings.DEFAULT_LEASE_TIMEOUT_SECONDS
    now = utcnow()
    expires_at = now + timedelta(seconds=duration)
    lease_token = uuid4()

    candidate = select(Job).where(
        Job.state == JobState.WAITING,
        Job.available_at <= now,
    ).order_by(
        Job.available_at.asc(),
        Job.created_at.asc()
    ).with_for_update(skip_locked=True).limit(1)

    found_job = (await session.execute(candidate)).scalar_one_or_none()
    if not found_job:
        return None

    # Guard on state again in case another worker won the race without row locks (SQLite)
    stmt = update(Job).where(
        Job.id == found_job.id,
        Job.state == JobState.WAITING
    ).values(
        state=JobState.ACTIVE,
        attempts=Job.attempts + 1,
        processed_on=now,
        updated_at=now
    ).execution_options(synchronize_session=False)

    result = await session.execute(stmt)
    if result.rowcount != 1:
        return None

    await session.refresh(found_job)
    job = found_job

    lease = JobLease(
        job_id=job.id,
        worker_id=worker_id,
        lease_token=lease_token,
        expires_at=expires_at,
        last_heartbeat_at=now
    )
    session.add(lease)

    available_at = as_utc(job.available_at)
    if available_at:
        delay = (now - available_at).total_seconds()
        if delay >= 0:
            JOB_START_DELAY.observe(delay)

    # Audit log
    session.add(JobEventLog(
        job_id=job.id,
        event_type=JobEvent.ACTIVATED,
        timestamp=now,
        meta={
            "worker_id": worker_id,
            "lease_token": str(lease_token),
            "expires_at": expires_at.isoformat(),
            "delivery": job.attempts
        }
    ))

    await session.flush()
    logger.debug("Worker %s claimed job %s (delivery %s)", worker_id, job.id, job.attempts)
    return job, lease

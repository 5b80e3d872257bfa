import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_notifier.db.models import Job, JobLease, JobEventLog
from invoice_notifier.domain.states import JobState, JobEvent
from invoice_notifier.domain.retry import calculate_next_run
from invoice_notifier.api.v1.metrics import JOB_REAPED_TOTAL
from invoice_notifier.commands.complete_job import observe_finish
from invoice_notifier.settings import settings
from invoice_notifier.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

async def requeue_expired_jobs(
    session: AsyncSession,
    limit: int = 100,
    max_deliveries: int | None = None,
    base_delay_seconds: int = 10
) -> int:
    """
    Finds expired leases (worker crashed mid-job), removes them and puts the
    job back to WAITING with a backoff. A job that has already been
    delivered max_deliveries times is FAILED instead.
    Returns number of jobs recovered.
    """
    now = utcnow()
    max_deliveries = max_deliveries if max_deliveries is not None else settings.MAX_DELIVERIES

    stmt = select(JobLease).where(
        JobLease.expires_at < now
    ).limit(limit).with_for_update(skip_locked=True)

    expired_leases = (await session.execute(stmt)).scalars().all()

    if not expired_leases:
        return 0

    count = 0
    for lease in expired_leases:
        job_stmt = select(Job).where(Job.id == lease.job_id).with_for_update()
        job = (await session.execute(job_stmt)).scalar_one()

        count += 1
        job.updated_at = now

        if job.attempts >= max_deliveries:
            job.state = JobState.FAILED
            job.failed_reason = f"Lease expired after {job.attempts} deliveries (worker crash?)"
            job.finished_on = now
            event_type = JobEvent.FAILED
            observe_finish(job, "failed", now)
        else:
            job.state = JobState.WAITING
            job.available_at = calculate_next_run(job.attempts, base_delay_seconds=base_delay_seconds)
            event_type = JobEvent.REQUEUED

        await session.delete(lease)

        session.add(JobEventLog(
            job_id=job.id,
            event_type=event_type,
            timestamp=now,
            meta={"reason": "lease_expired", "worker_id": lease.worker_id, "delivery": job.attempts}
        ))
        logger.warning("Lease for job %s expired (worker=%s); moved to %s", job.id, lease.worker_id, job.state)

    JOB_REAPED_TOTAL.inc(count)

    await session.flush()
    return count

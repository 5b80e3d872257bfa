from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_notifier.db.models import JobLease
from invoice_notifier.domain.errors import LeaseNotFoundError, LeaseExpiredError
from invoice_notifier.utils.timestamps import as_utc, utcnow

async def heartbeat(
    session: AsyncSession,
    job_id: UUID,
    lease_token: UUID,
    extend_seconds: int = 60
) -> datetime:
    """
    Renews the lease for an ACTIVE job.
    Raises if the lease is gone (reaped, finished) or already expired.
    Returns new expires_at.
    """
    now = utcnow()

    stmt = select(JobLease).where(
        JobLease.job_id == job_id,
        JobLease.lease_token == lease_token
    )
    lease = (await session.execute(stmt)).scalar_one_or_none()

    if not lease:
        raise LeaseNotFoundError(f"Lease for job {job_id} not found or token mismatch")

    expires_at = as_utc(lease.expires_at)
    if expires_at < now:
        # The reaper may already be handing the job to someone else
        raise LeaseExpiredError(f"Lease for job {job_id} expired at {expires_at}")

    new_expires_at = now + timedelta(seconds=extend_seconds)

    lease.last_heartbeat_at = now
    lease.expires_at = new_expires_at

    await session.flush()
    return new_expires_at

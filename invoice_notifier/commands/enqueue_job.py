import time

from uuid import uuid4
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_notifier.db.models import Job, JobEventLog
from invoice_notifier.domain.jobs import JobData
from invoice_notifier.domain.states import JobState, JobEvent
from invoice_notifier.api.v1.metrics import JOBS_ENQUEUED
from invoice_notifier.utils.timestamps import utcnow

def build_job_name(kind: str, job_id) -> str:
    # Submission timestamp keeps resubmitted identical requests distinct
    return f"{kind}-{int(time.time() * 1000)}-{job_id.hex[:8]}"

async def enqueue_job(session: AsyncSession, data: JobData) -> Job:
    """
    Persists an already validated job in WAITING state.
    Does not wait for execution.
    """
    now = utcnow()
    job_id = uuid4()

    job = Job(
        id=job_id,
        name=build_job_name(data.type, job_id),
        kind=data.type,
        provider=data.provider,
        data=data.to_wire(),
        state=JobState.WAITING,
        progress=0,
        attempts=0,
        created_at=now,
        updated_at=now,
        available_at=now,
    )
    session.add(job)

    session.add(JobEventLog(
        job_id=job_id,
        event_type=JobEvent.CREATED,
        timestamp=now,
        meta={"kind": data.type, "provider": data.provider}
    ))

    await session.flush()

    JOBS_ENQUEUED.labels(kind=data.type).inc()
    return job

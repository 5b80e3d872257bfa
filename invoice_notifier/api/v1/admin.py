from typing import Optional

from fastapi import APIRouter, Depends, Query

from invoice_notifier.api.deps import AppSettings, Queue
from invoice_notifier.auth.security import require_admin
from invoice_notifier.domain.states import JobState

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/jobs")
async def job_history(
    queue: Queue,
    state: Optional[JobState] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """Recent jobs (newest first) and the number of jobs in each state."""
    jobs = await queue.list_jobs(state=state, limit=limit, offset=offset)
    return {
        "queue": queue.name,
        "counts": await queue.counts(),
        "jobs": [job.to_response() for job in jobs],
    }


@router.post("/requeue_expired")
async def trigger_requeue_expired(queue: Queue, settings: AppSettings):
    count = await queue.requeue_expired(max_deliveries=settings.MAX_DELIVERIES)
    return {"requeued_count": count}

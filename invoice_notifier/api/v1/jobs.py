import json

from fastapi import APIRouter, Depends, HTTPException, Request, status

from invoice_notifier.api.deps import Queue
from invoice_notifier.auth.security import require_api_token
from invoice_notifier.domain.errors import JobValidationError

router = APIRouter(dependencies=[Depends(require_api_token)])


async def _read_json(request: Request):
    try:
        return json.loads(await request.body())
    except ValueError as e:
        raise JobValidationError(
            "Invalid job request: body is not valid JSON",
            [{"loc": [], "msg": str(e)}],
        ) from e


@router.post("")
async def create_job(request: Request, queue: Queue):
    """Validate and enqueue a job; does not wait for it to run."""
    try:
        handle = await queue.enqueue(await _read_json(request))
    except JobValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": str(e), "errors": e.errors},
        )
    return handle.to_response()


@router.get("/{job_id}")
async def get_job(job_id: str, queue: Queue):
    snapshot = await queue.get_job(job_id)
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "Job not found", "jobId": job_id},
        )
    return snapshot.to_response()

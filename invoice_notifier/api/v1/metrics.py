from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response

router = APIRouter()

# Metrics Definitions
QUEUE_DEPTH = Gauge('invoice_queue_jobs', 'Number of jobs per lifecycle state', ['state'])
JOBS_ENQUEUED = Counter('invoice_jobs_enqueued_total', 'Total jobs accepted into the queue', ['kind'])
JOB_OUTCOMES = Counter('invoice_job_outcomes_total', 'Total finished jobs', ['kind', 'provider', 'result']) # result=completed|failed
JOB_START_DELAY = Histogram('invoice_job_start_delay_seconds', 'Time from available_at to claim', buckets=[0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0])

JOB_DURATION = Histogram('invoice_job_duration_seconds', 'Time from claim to terminal state', buckets=[0.5, 1.0, 5.0, 10.0, 60.0, 120.0])

PROVIDER_LOGINS = Counter(
    "invoice_provider_logins_total",
    "Upstream authentication round-trips per provider",
    ["provider", "result"] # success | failure
)

JOB_REAPED_TOTAL = Counter(
    "invoice_jobs_reaped_total",
    "Total number of active jobs recovered from expired leases"
)

@router.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

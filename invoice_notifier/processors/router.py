"""Routes a claimed job to the processor for its kind."""

import logging
from typing import Awaitable, Callable

from invoice_notifier.domain.errors import UnknownJobKindError
from invoice_notifier.domain.jobs import JobResult, parse_job_data
from invoice_notifier.domain.models import ClaimedJob
from invoice_notifier.domain.states import JobKind
from invoice_notifier.processors.context import JobContext
from invoice_notifier.processors.fetch_account_data import process_fetch_account_data
from invoice_notifier.processors.fetch_invoice import process_fetch_invoice
from invoice_notifier.processors.pay_invoice import process_pay_invoice
from invoice_notifier.processors.reject_invoice import process_reject_invoice
from invoice_notifier.providers.registry import ProviderRegistry
from invoice_notifier.services.queue import QueueEngine

logger = logging.getLogger(__name__)

Processor = Callable[[JobContext], Awaitable[JobResult]]

PROCESSORS: dict[str, Processor] = {
    JobKind.FETCH_ACCOUNT_DATA: process_fetch_account_data,
    JobKind.FETCH_INVOICE: process_fetch_invoice,
    JobKind.PAY_INVOICE: process_pay_invoice,
    JobKind.REJECT_INVOICE: process_reject_invoice,
}


async def process_job(job: ClaimedJob, queue: QueueEngine, registry: ProviderRegistry) -> JobResult:
    """Run the processor matching ``job.data["type"]`` and return its result.

    Raises:
        UnknownJobKindError: the stored payload names no known kind.
        Anything the processor raises, unchanged.
    """
    kind = job.data.get("type")
    await queue.log(job.id, f"Processing job type: {kind}")

    processor = PROCESSORS.get(kind)
    if processor is None:
        raise UnknownJobKindError(kind)

    ctx = JobContext(
        job_id=job.id,
        name=job.name,
        data=parse_job_data(job.data),
        queue=queue,
        registry=registry,
    )
    logger.debug("Dispatching job %s to %s", job.id, processor.__name__)
    return await processor(ctx)

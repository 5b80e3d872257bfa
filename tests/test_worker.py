import asyncio

import pytest

from invoice_notifier.domain.states import JobState
from invoice_notifier.worker.runner import QueueWorker


@pytest.fixture
def worker(queue, registry):
    return QueueWorker(queue, registry, worker_id="test-worker", poll_interval=0.05, heartbeat_interval=0.05)


@pytest.mark.anyio
async def test_fetch_invoice_job_runs_to_completion(queue, worker, eon_upstream):
    handle = await queue.enqueue({
        "type": "fetch-invoice",
        "provider": "eon",
        "accountContract": "0022",
        "status": "unpaid",
    })
    assert (await queue.get_job(handle.id)).state == JobState.WAITING

    assert await worker.run_once() is True

    snapshot = (await queue.get_job(handle.id)).to_response()
    assert snapshot["state"] == "completed"
    assert snapshot["progress"] == 100
    assert snapshot["returnvalue"]["count"] == len(snapshot["returnvalue"]["invoices"]) == 1
    assert snapshot["returnvalue"]["invoices"][0]["invoiceNumber"] == "011895623139"
    assert snapshot["failedReason"] is None
    assert snapshot["finishedOn"] >= snapshot["processedOn"]
    messages = [line.split(" ", 1)[1] for line in snapshot["logs"]]
    assert messages[0] == "Processing job type: fetch-invoice"
    assert messages[-1] == "Invoices fetched successfully. Count: 1"
    assert eon_upstream.login_calls == 1


@pytest.mark.anyio
async def test_progress_is_non_decreasing_and_ends_at_100(queue, worker, monkeypatch):
    seen = []
    update_progress = queue.update_progress

    async def recording(job_id, progress):
        stored = await update_progress(job_id, progress)
        seen.append(stored)
        return stored

    monkeypatch.setattr(queue, "update_progress", recording)
    await queue.enqueue({"type": "fetch-account-data", "provider": "eon", "accountContract": "0022"})

    await worker.run_once()

    assert seen == sorted(seen)
    assert seen[-1] == 100


@pytest.mark.anyio
async def test_payment_on_provider_without_endpoint_fails(queue, worker, nova_upstream):
    handle = await queue.enqueue({
        "type": "pay-invoice",
        "provider": "nova-apa-serv",
        "accountContract": "X",
        "invoiceNumber": "1",
        "amount": 10,
    })

    await worker.run_once()

    snapshot = await queue.get_job(handle.id)
    assert snapshot.state == JobState.FAILED
    assert snapshot.failed_reason.startswith("CapabilityNotImplementedError: ")
    assert "nova-apa-serv" in snapshot.failed_reason
    assert "pay-invoice" in snapshot.failed_reason
    assert snapshot.progress == 30
    assert snapshot.finished_on is not None
    assert nova_upstream.requests == []


@pytest.mark.anyio
async def test_unknown_provider_fails_job_without_retry(queue, worker):
    handle = await queue.enqueue({"type": "fetch-account-data", "provider": "acme-gas", "accountContract": "0022"})

    await worker.run_once()

    snapshot = await queue.get_job(handle.id)
    assert snapshot.state == JobState.FAILED
    assert snapshot.failed_reason == (
        "UnknownProviderError: Unknown provider: acme-gas. Supported providers: eon, nova-apa-serv"
    )
    assert await worker.run_once() is False


@pytest.mark.anyio
async def test_run_once_on_empty_queue(worker):
    assert await worker.run_once() is False


@pytest.mark.anyio
async def test_jobs_are_processed_in_submission_order(queue, worker):
    first = await queue.enqueue({"type": "fetch-account-data", "provider": "eon", "accountContract": "A"})
    second = await queue.enqueue({"type": "fetch-account-data", "provider": "eon", "accountContract": "B"})

    await worker.run_once()

    assert (await queue.get_job(first.id)).state == JobState.COMPLETED
    assert (await queue.get_job(second.id)).state == JobState.WAITING


@pytest.mark.anyio
async def test_background_loop_drains_queue_until_stopped(queue, worker):
    handles = [
        await queue.enqueue({"type": "fetch-invoice", "provider": "eon", "accountContract": "0022", "status": "all"})
        for _ in range(3)
    ]

    await worker.start()
    try:
        for _ in range(100):
            counts = await queue.counts()
            if counts["completed"] == 3:
                break
            await asyncio.sleep(0.05)
    finally:
        await worker.stop()

    for handle in handles:
        snapshot = await queue.get_job(handle.id)
        assert snapshot.state == JobState.COMPLETED
        assert snapshot.returnvalue["count"] == 3

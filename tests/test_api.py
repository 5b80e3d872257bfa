from uuid import uuid4

import httpx
import pytest

from invoice_notifier.main import create_app

AUTH = {"Authorization": "Bearer test-token"}
ADMIN = ("admin", "s3cret")


@pytest.fixture
async def client(queue, registry, settings):
    app = create_app(queue=queue, registry=registry, settings=settings)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.mark.anyio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.anyio
@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "Basic dGVzdC10b2tlbg=="}])
async def test_api_routes_require_bearer_token(client, headers):
    assert (await client.get("/api/v1/providers", headers=headers)).status_code == 401
    resp = await client.post(
        "/api/v1/jobs",
        headers=headers,
        json={"type": "fetch-account-data", "provider": "eon", "accountContract": "0022"},
    )
    assert resp.status_code == 401


@pytest.mark.anyio
async def test_create_and_fetch_job(client):
    resp = await client.post(
        "/api/v1/jobs",
        headers=AUTH,
        json={"type": "fetch-invoice", "provider": "eon", "accountContract": "0022", "status": "paid"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["jobType"] == "fetch-invoice"
    assert body["jobName"].startswith("fetch-invoice-")

    resp = await client.get(f"/api/v1/jobs/{body['jobId']}", headers=AUTH)
    assert resp.status_code == 200
    job = resp.json()
    assert job["jobId"] == body["jobId"]
    assert job["state"] == "waiting"
    assert job["progress"] == 0
    assert job["data"]["status"] == "paid"
    assert job["returnvalue"] is None
    assert job["processedOn"] is None
    assert job["logs"] == []


INVALID_BODIES = [
    b'{"type": "pay-invoice", "provider": "eon", "accountContract": "0022", "invoiceNumber": "1"}',
    b'{"type": "pay-invoice", "provider": "eon", "accountContract": "0022", "invoiceNumber": "1", "amount": "Infinity"}',
    b'{"type": "pay-invoice", "provider": "eon", "accountContract": "0022", "invoiceNumber": "1", "amount": NaN}',
    b"[1]",
    b'"x"',
    b"{bad",
    b"",
]


@pytest.mark.anyio
@pytest.mark.parametrize("body", INVALID_BODIES)
async def test_invalid_job_is_rejected_with_400(client, queue, body):
    resp = await client.post(
        "/api/v1/jobs",
        headers={**AUTH, "Content-Type": "application/json"},
        content=body,
    )

    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["error"].startswith("Invalid")
    assert isinstance(detail["errors"], list)
    assert sum((await queue.counts()).values()) == 0


@pytest.mark.anyio
async def test_missing_amount_is_named_in_error(client):
    resp = await client.post(
        "/api/v1/jobs",
        headers=AUTH,
        json={"type": "pay-invoice", "provider": "eon", "accountContract": "0022", "invoiceNumber": "1"},
    )

    assert resp.status_code == 400
    assert "amount" in resp.json()["detail"]["error"]


@pytest.mark.anyio
@pytest.mark.parametrize("job_id", [str(uuid4()), "12345"])
async def test_unknown_job_is_404(client, job_id):
    resp = await client.get(f"/api/v1/jobs/{job_id}", headers=AUTH)

    assert resp.status_code == 404
    assert resp.json()["detail"] == {"error": "Job not found", "jobId": job_id}


@pytest.mark.anyio
async def test_list_providers(client):
    resp = await client.get("/api/v1/providers", headers=AUTH)

    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 2
    eon = body["providers"][0]
    assert eon["id"] == "eon"
    assert eon["abilities"] == ["fetch-account-data", "fetch-invoice"]
    assert eon["logo"].startswith("data:image/png;base64,")
    assert body["providers"][1]["logo"] is None


@pytest.mark.anyio
async def test_admin_requires_basic_auth(client):
    assert (await client.get("/api/v1/admin/jobs")).status_code == 401
    resp = await client.get("/api/v1/admin/jobs", auth=("admin", "wrong"))
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"].startswith("Basic")
    assert (await client.get("/api/v1/admin/jobs", headers=AUTH)).status_code == 401


@pytest.mark.anyio
async def test_admin_job_history(client, queue):
    await queue.enqueue({"type": "fetch-account-data", "provider": "eon", "accountContract": "A"})
    await queue.enqueue({"type": "fetch-account-data", "provider": "eon", "accountContract": "B"})
    await queue.claim("worker-a")

    resp = await client.get("/api/v1/admin/jobs", auth=ADMIN)
    assert resp.status_code == 200
    body = resp.json()
    assert body["counts"] == {"waiting": 1, "active": 1, "completed": 0, "failed": 0}
    assert len(body["jobs"]) == 2

    resp = await client.get("/api/v1/admin/jobs", params={"state": "active"}, auth=ADMIN)
    assert [job["data"]["accountContract"] for job in resp.json()["jobs"]] == ["A"]

    assert (await client.get("/api/v1/admin/jobs", params={"state": "stuck"}, auth=ADMIN)).status_code == 422


@pytest.mark.anyio
async def test_admin_requeue_expired(client, queue):
    await queue.enqueue({"type": "fetch-account-data", "provider": "eon", "accountContract": "A"})
    await queue.claim("crashed-worker", lease_duration=-1)

    resp = await client.post("/api/v1/admin/requeue_expired", auth=ADMIN)

    assert resp.status_code == 200
    assert resp.json() == {"requeued_count": 1}


@pytest.mark.anyio
async def test_metrics_exposition(client):
    await client.post(
        "/api/v1/jobs",
        headers=AUTH,
        json={"type": "fetch-account-data", "provider": "eon", "accountContract": "0022"},
    )

    resp = await client.get("/metrics")

    assert resp.status_code == 200
    assert 'invoice_jobs_enqueued_total{kind="fetch-account-data"}' in resp.text

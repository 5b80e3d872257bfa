#!/usr/bin/env python3
"""Smoke test against a running server.

Usage: API_TOKEN=... PROVIDER=eon ACCOUNT_CONTRACT=0022... python scripts/verify_e2e.py
"""
import asyncio
import os

import httpx

API_URL = os.environ.get("API_URL", "http://localhost:8000")
API_TOKEN = os.environ.get("API_TOKEN", "")
PROVIDER = os.environ.get("PROVIDER", "eon")
ACCOUNT_CONTRACT = os.environ.get("ACCOUNT_CONTRACT", "002202348574")


async def wait_until_ready(client: httpx.AsyncClient) -> bool:
    for _ in range(30):
        try:
            resp = await client.get("/health")
            if resp.status_code == 200:
                return True
        except httpx.HTTPError:
            pass
        await asyncio.sleep(1)
    return False


async def verify():
    print("Waiting for API to be ready...")
    headers = {"Authorization": f"Bearer {API_TOKEN}"}

    async with httpx.AsyncClient(base_url=API_URL, timeout=30.0, headers=headers) as client:
        if not await wait_until_ready(client):
            print("API failed to become ready.")
            return

        resp = await client.get("/api/v1/providers")
        if resp.status_code != 200:
            print(f"Failed to list providers: {resp.status_code} {resp.text}")
            return
        print(f"Providers: {[p['id'] for p in resp.json()['providers']]}")

        print("Submitting job...")
        resp = await client.post("/api/v1/jobs", json={
            "type": "fetch-invoice",
            "provider": PROVIDER,
            "accountContract": ACCOUNT_CONTRACT,
            "status": "unpaid",
        })
        if resp.status_code != 200:
            print(f"Failed to create job: {resp.text}")
            return

        job_id = resp.json()["jobId"]
        print(f"Job created: {job_id}")

        job = None
        for _ in range(60):
            resp = await client.get(f"/api/v1/jobs/{job_id}")
            job = resp.json()
            if job["state"] in ("completed", "failed"):
                break
            await asyncio.sleep(1)

        print(f"Job state: {job['state']} (progress {job['progress']})")
        for line in job["logs"]:
            print(f"  {line}")

        if job["state"] == "completed":
            print(f"SUCCESS: {job['returnvalue']['count']} invoice(s) fetched.")
        else:
            print(f"FAILURE: {job['failedReason']}")


if __name__ == "__main__":
    asyncio.run(verify())

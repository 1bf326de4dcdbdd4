import asyncio
import json
from pathlib import Path

import respx
from httpx import AsyncClient, Response

SUPABASE_ENDPOINT = "https://project.supabase.co/rest/v1/restaurants"


def _mock_count(total=1):
    respx.head(SUPABASE_ENDPOINT).mock(
        return_value=Response(200, headers={"content-range": f"0-0/{total}"})
    )


def _mock_rows(rows):
    return respx.get(SUPABASE_ENDPOINT).mock(return_value=Response(200, json=rows))


def _cafe_row(**overrides):
    row = {
        "id": "r1",
        "name": "Cafe Goa",
        "area": "Salmiya",
        "description": None,
        "apify_output": {"price": "$$", "email": "info@cafegoa.com"},
        "firecrawl_output": None,
        "email": None,
        "price_level": None,
    }
    row.update(overrides)
    return row


async def submit_and_wait(client: AsyncClient, json=None, timeout: float = 5.0):
    """POST /reconcile → 202, then poll GET /jobs/{job_id} until terminal state."""
    resp = await client.post("/reconcile", json=json)
    assert resp.status_code == 202

    data = resp.json()
    job_id = data["job_id"]
    assert data["status"] == "pending"

    deadline = asyncio.get_event_loop().time() + timeout
    while asyncio.get_event_loop().time() < deadline:
        await asyncio.sleep(0.05)
        status_resp = await client.get(f"/jobs/{job_id}")
        assert status_resp.status_code == 200
        job = status_resp.json()
        if job["status"] in ("completed", "failed"):
            return job

    raise TimeoutError(f"Job {job_id} did not complete within {timeout}s")


@respx.mock
async def test_reconcile_full_flow(client, tmp_path):
    _mock_count()
    get_route = _mock_rows([_cafe_row()])
    patch_route = respx.patch(SUPABASE_ENDPOINT).mock(return_value=Response(204))

    job = await submit_and_wait(client)

    assert job["status"] == "completed"
    stats = job["result"]["stats"]
    assert stats["total_processed"] == 1
    assert stats["total_updated"] == 1
    assert stats["fields_updated"]["price_level"] == 1
    assert stats["fields_updated"]["email"] == 1

    # Null-filter mode by default
    assert "or" in get_route.calls.last.request.url.params

    assert patch_route.call_count == 1
    body = json.loads(patch_route.calls.last.request.content)
    assert body["price_level"] == 2
    assert body["email"] == "info@cafegoa.com"

    reports = list(Path(tmp_path / "logs").glob("field-population-*.json"))
    assert len(reports) == 1


@respx.mock
async def test_reconcile_dry_run_never_patches(client):
    _mock_count()
    _mock_rows([_cafe_row()])
    patch_route = respx.patch(SUPABASE_ENDPOINT).mock(return_value=Response(204))

    job = await submit_and_wait(client, json={"dry_run": True})

    assert job["status"] == "completed"
    assert job["dry_run"] is True
    assert job["result"]["stats"]["total_updated"] == 1
    assert not patch_route.called


@respx.mock
async def test_reconcile_full_scan_drops_filter(client):
    _mock_count()
    get_route = _mock_rows([])

    job = await submit_and_wait(client, json={"full_scan": True})

    assert job["status"] == "completed"
    assert job["result"]["full_scan"] is True
    assert "or" not in get_route.calls.last.request.url.params


@respx.mock
async def test_reconcile_fetch_failure_marks_job_failed(client):
    _mock_count()
    respx.get(SUPABASE_ENDPOINT).mock(return_value=Response(500, text="db down"))

    job = await submit_and_wait(client)

    assert job["status"] == "failed"
    assert "db down" in job["error"]
    assert job["result"] is None


@respx.mock
async def test_reconcile_update_failure_recorded(client):
    _mock_count(2)
    _mock_rows([_cafe_row(), _cafe_row(id="r2", name="Cafe Two")])
    respx.patch(SUPABASE_ENDPOINT).mock(
        side_effect=[Response(400, text="bad value"), Response(204)]
    )

    job = await submit_and_wait(client)

    assert job["status"] == "completed"
    stats = job["result"]["stats"]
    assert stats["total_processed"] == 2
    assert stats["total_updated"] == 1
    assert stats["errors"][0]["listing"] == "Cafe Goa"


async def test_reconcile_already_running(client):
    from listing_pipeline.main import app

    active = app.state.job_store.create_job()

    resp = await client.post("/reconcile")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "already_running"
    assert data["job_id"] == active.job_id


async def test_get_job_nonexistent(client):
    resp = await client.get("/jobs/does_not_exist")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Job not found"


@respx.mock
async def test_sync_endpoint(client):
    _mock_count(0)
    _mock_rows([])

    resp = await client.post("/reconcile/sync", json={"dry_run": True})
    assert resp.status_code == 200

    data = resp.json()
    assert data["table"] == "restaurants"
    assert data["dry_run"] is True
    assert data["stats"]["total_processed"] == 0


@respx.mock
async def test_sync_supabase_error_maps_to_502(client):
    _mock_count()
    respx.get(SUPABASE_ENDPOINT).mock(return_value=Response(401, text="JWT expired"))

    resp = await client.post("/reconcile/sync")

    assert resp.status_code == 502
    assert "JWT expired" in resp.json()["detail"]


@respx.mock
async def test_sync_rate_limit_maps_to_429(client):
    _mock_count()
    respx.get(SUPABASE_ENDPOINT).mock(return_value=Response(429))

    resp = await client.post("/reconcile/sync")

    assert resp.status_code == 429
    assert "Supabase" in resp.json()["detail"]


@respx.mock
async def test_reconcile_task_released_after_run(client):
    from listing_pipeline.main import app

    _mock_count()
    _mock_rows([])

    job = await submit_and_wait(client)

    assert job["status"] == "completed"
    await asyncio.sleep(0.01)
    assert app.state.job_store.running_tasks == 0

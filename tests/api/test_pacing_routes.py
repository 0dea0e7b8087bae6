"""
Pacing endpoint tests.

Tests for:
- GET /api/v1/bucket
- GET /api/v1/usage
"""

import time

from httpx import AsyncClient

from pacer.main import app
from pacer.services.usage import UsageRecorder


class TestGetBucket:
    """Tests for GET /api/v1/bucket."""

    async def test_bucket_not_initialized_returns_404(self, async_client: AsyncClient):
        """The row does not exist until init() runs."""
        response = await async_client.get("/api/v1/bucket")

        assert response.status_code == 404
        assert response.json()["detail"]["error"]["code"] == "NOT_FOUND"

    async def test_bucket_state(self, async_client: AsyncClient):
        bucket = app.state.bucket
        await bucket.init()
        await bucket.consume(4)

        response = await async_client.get("/api/v1/bucket")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "test.bucket"
        assert data["rate"] == 10.0
        assert data["limit"] is None
        assert data["initial"] == 10
        assert data["count"] == 6
        assert data["next_feed"].startswith("2026-02-01")

    async def test_bucket_service_missing_returns_503(self, async_client: AsyncClient):
        app.state.bucket = None

        response = await async_client.get("/api/v1/bucket")

        assert response.status_code == 503
        assert response.json()["detail"]["error"]["code"] == "SERVICE_UNAVAILABLE"


class TestGetUsage:
    """Tests for GET /api/v1/usage."""

    async def test_empty_usage(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/usage")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 0
        assert data["items"] == []

    async def test_usage_sums_instances(self, async_client: AsyncClient, sessions):
        first = UsageRecorder(sessions, "worker-a")
        second = UsageRecorder(sessions, "worker-b")
        await first.record()
        await first.record()
        await second.record()

        response = await async_client.get("/api/v1/usage", params={"seconds": 120})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert sum(item["count"] for item in data["items"]) == 3
        assert data["since"] <= int(time.time()) - 120

    async def test_window_excludes_old_seconds(self, async_client: AsyncClient, sessions, clock):
        """Counts recorded at the fixed test clock are far outside a 60 second window."""
        recorder = UsageRecorder(sessions, "worker-a", clock=clock)
        await recorder.record()

        response = await async_client.get("/api/v1/usage")

        assert response.json()["total"] == 0

    async def test_window_bounds_are_validated(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/usage", params={"seconds": 0})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

        response = await async_client.get("/api/v1/usage", params={"seconds": 7200})
        assert response.status_code == 422

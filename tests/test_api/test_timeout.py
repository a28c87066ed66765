"""Tests for request timeout middleware."""

import asyncio

from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.middleware.timeout import TimeoutMiddleware


def _create_test_app(timeout: float = 1.0) -> FastAPI:
    """Create a minimal FastAPI app with timeout middleware for testing."""
    app = FastAPI()
    app.add_middleware(TimeoutMiddleware, timeout_seconds=timeout)

    @app.get("/fast")
    async def fast():
        return {"status": "ok"}

    @app.get("/slow")
    async def slow():
        await asyncio.sleep(10)
        return {"status": "ok"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    @app.post("/admin/recalculate-confidence")
    async def recalculate():
        await asyncio.sleep(0.3)
        return {"status": "done"}

    return app


class TestTimeoutMiddleware:
    """Tests for TimeoutMiddleware behavior."""

    def test_fast_request_succeeds(self):
        app = _create_test_app(timeout=5.0)
        client = TestClient(app)
        response = client.get("/fast")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_slow_request_returns_504(self):
        app = _create_test_app(timeout=0.1)
        client = TestClient(app)
        response = client.get("/slow")
        assert response.status_code == 504
        data = response.json()
        assert "timed out" in data["detail"]
        assert data["timeout_seconds"] == 0.1

    def test_health_excluded_from_timeout(self):
        app = _create_test_app(timeout=5.0)
        client = TestClient(app)
        response = client.get("/health")
        assert response.status_code == 200

    def test_admin_jobs_excluded_from_timeout(self):
        """Batch jobs run past the request timeout and bound themselves."""
        app = _create_test_app(timeout=0.1)
        client = TestClient(app)
        response = client.post("/admin/recalculate-confidence")
        assert response.status_code == 200
        assert response.json() == {"status": "done"}

# ============================================================================
# API ROUTES TESTS
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Tests - HTTP endpoints
# PURPOSE: Verify status codes and response shapes of the diagnostics API
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Routes Tests

Tests the HTTP endpoints (api/routes.py) against real DiagnosticsServices
built on a temp dump directory, using FastAPI TestClient.

Covers:
1. /health returns 200 for UP and 503 for DOWN
2. /health/indicators and /health/{name} (404 for unknown)
3. /threaddump shape
4. /heapdump create (200/500), stats, cleanup, download (403/404)
5. create_app() lifespan installs and removes task tracking

Run with:
    pytest tests/test_routes.py -v
"""

import os

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.routes import router, set_services
from core.config import DiagnosticsConfig, RetryPolicy
from core.errors import DumpIOError
from diagnostics.heap_dump import HeapDumpGenerator
from diagnostics.writers import SnapshotWriter, SyntheticReportWriter
from health.core import HealthIndicator
from services import DiagnosticsServices


# ============================================================================
# FIXTURES
# ============================================================================

class FailingWriter(SyntheticReportWriter):
    def capture(self):
        return {}

    def write(self, path, captured):
        raise DumpIOError("disk full", path=path, strategy=self.strategy)


class StaticWriter(SnapshotWriter):
    strategy = "static"

    def write(self, path, captured):
        with open(path, "wb") as f:
            f.write(b"snapshot")


async def _up():
    return {"status": "UP", "details": {"ok": True}}


async def _down():
    return {"status": "DOWN", "details": {"error": "conn lost"}}


def _make_services(tmp_path, writer=None, indicators=()):
    config = DiagnosticsConfig.from_dict({
        "health_check_timeout_ms": 500,
        "retry_policy": {"max_attempts": 1},
        "heap_dump": {"output_dir": str(tmp_path / "dumps")},
    })
    services = DiagnosticsServices(
        config=config,
        heap_dump=HeapDumpGenerator(config.heap_dump, writer=writer or StaticWriter()),
    )
    for indicator in indicators:
        services.registry.add(indicator)
    return services


def _make_test_app(services):
    """Create a test FastAPI app with diagnostics routes."""
    app = FastAPI()
    app.include_router(router)
    set_services(services)
    return app


@pytest.fixture(autouse=True)
def _reset_services():
    yield
    set_services(None)


# ============================================================================
# HEALTH
# ============================================================================

class TestHealthRoutes:
    """/health endpoints."""

    def test_up_returns_200(self, tmp_path):
        services = _make_services(tmp_path, indicators=[
            HealthIndicator("db", _up, critical=True),
            HealthIndicator("cache", _down),
        ])
        client = TestClient(_make_test_app(services))

        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "UP"
        assert [c["name"] for c in body["details"]["checks"]] == ["db", "cache"]

    def test_critical_down_returns_503(self, tmp_path):
        services = _make_services(tmp_path, indicators=[HealthIndicator("db", _down, critical=True)])
        client = TestClient(_make_test_app(services))

        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["details"]["checks"][0]["details"] == {"error": "conn lost"}

    def test_list_indicators(self, tmp_path):
        services = _make_services(tmp_path, indicators=[
            HealthIndicator("db", _up, critical=True),
            HealthIndicator("off", _up, enabled=False),
        ])
        client = TestClient(_make_test_app(services))

        response = client.get("/health/indicators")
        assert response.status_code == 200
        assert response.json()["indicators"] == [
            {"name": "db", "enabled": True, "critical": True},
            {"name": "off", "enabled": False, "critical": False},
        ]

    def test_single_indicator(self, tmp_path):
        services = _make_services(tmp_path, indicators=[HealthIndicator("db", _up, critical=True)])
        client = TestClient(_make_test_app(services))

        response = client.get("/health/db")
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "db"
        assert body["status"] == "UP"
        assert body["critical"] is True

    def test_unknown_indicator_404(self, tmp_path):
        client = TestClient(_make_test_app(_make_services(tmp_path)))
        assert client.get("/health/nope").status_code == 404

    def test_services_not_initialized(self):
        app = FastAPI()
        app.include_router(router)
        set_services(None)
        assert TestClient(app).get("/health").status_code == 500


# ============================================================================
# THREAD DUMP
# ============================================================================

class TestThreadDumpRoute:
    """/threaddump."""

    def test_thread_dump(self, tmp_path):
        client = TestClient(_make_test_app(_make_services(tmp_path)))

        response = client.get("/threaddump")
        assert response.status_code == 200
        body = response.json()
        assert body["pid"] == os.getpid()
        assert body["eventLoop"]["running"] is True
        assert isinstance(body["threads"], list)


# ============================================================================
# HEAP DUMP
# ============================================================================

class TestHeapDumpRoutes:
    """/heapdump endpoints."""

    def test_create_stats_download_cleanup(self, tmp_path):
        client = TestClient(_make_test_app(_make_services(tmp_path)))

        created = client.post("/heapdump")
        assert created.status_code == 200
        body = created.json()
        assert body["success"] is True
        assert body["metadata"]["strategy"] == "static"
        name = os.path.basename(body["filePath"])

        stats = client.get("/heapdump/stats").json()
        assert stats["count"] == 1
        assert stats["files"][0]["path"] == body["filePath"]

        download = client.get("/heapdump/download", params={"file": name})
        assert download.status_code == 200
        assert download.content == b"snapshot"

        kept = client.delete("/heapdump", params={"max_age_ms": 60_000}).json()
        assert kept == {"deleted": [], "count": 0}

        removed = client.delete("/heapdump", params={"max_age_ms": 0}).json()
        assert removed["count"] == 1
        assert client.get("/heapdump/stats").json()["count"] == 0

    def test_failed_dump_returns_500(self, tmp_path):
        client = TestClient(_make_test_app(_make_services(tmp_path, writer=FailingWriter())))

        response = client.post("/heapdump")
        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert "disk full" in body["error"]

    def test_download_outside_directory_forbidden(self, tmp_path):
        client = TestClient(_make_test_app(_make_services(tmp_path)))
        response = client.get("/heapdump/download", params={"file": "../../etc/passwd"})
        assert response.status_code == 403

    def test_download_missing_file(self, tmp_path):
        client = TestClient(_make_test_app(_make_services(tmp_path)))
        response = client.get("/heapdump/download", params={"file": "heapdump-none.heapsnapshot"})
        assert response.status_code == 404

    def test_negative_max_age_rejected(self, tmp_path):
        client = TestClient(_make_test_app(_make_services(tmp_path)))
        assert client.delete("/heapdump", params={"max_age_ms": -1}).status_code == 422


# ============================================================================
# APPLICATION
# ============================================================================

class TestCreateApp:
    """main.create_app() wiring."""

    def test_lifespan_installs_and_removes_tracking(self, tmp_path):
        from main import create_app

        services = _make_services(tmp_path, indicators=[HealthIndicator("db", _up, critical=True)])
        app = create_app(services=services)

        with TestClient(app) as client:
            assert services.thread_dump.tracking is True
            assert client.get("/").json()["service"] == "Runtime Diagnostics"
            assert client.get("/health").status_code == 200

        assert services.thread_dump.tracking is False

    def test_services_create_registers_builtins(self, tmp_path):
        config = DiagnosticsConfig.from_dict({
            "heap_dump": {"output_dir": str(tmp_path / "dumps")},
            "health_indicators": {"disk_space_path": str(tmp_path)},
            "retry_policy": RetryPolicy(max_attempts=2).model_dump(),
        })
        services = DiagnosticsServices.create(config)

        assert [i["name"] for i in services.registry.list()] == ["diskSpace", "process"]
        assert services.retry.policy.max_attempts == 2

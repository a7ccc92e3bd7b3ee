"""Tests for health tracking and the service app factory."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from voicegate.common.app_factory import create_service_app
from voicegate.common.health import HealthManager, HealthStatus


@pytest.mark.unit
class TestHealthManager:
    async def test_not_ready_before_startup(self):
        status = await HealthManager("svc").get_health_status()
        assert status.ready is False
        assert status.status is HealthStatus.HEALTHY

    async def test_failing_dependency_degrades(self):
        manager = HealthManager("svc")
        manager.register_dependency("ok", lambda: True)
        manager.register_dependency("down", lambda: False)
        manager.mark_startup_complete()

        status = await manager.get_health_status()

        assert status.ready is True
        assert status.status is HealthStatus.DEGRADED
        assert status.details["dependencies"]["down"] == {"available": False}

    async def test_async_dependency_and_exception(self):
        async def check() -> bool:
            return True

        def broken() -> bool:
            raise RuntimeError("probe failed")

        manager = HealthManager("svc")
        manager.register_dependency("async", check)
        manager.register_dependency("broken", broken)
        status = await manager.get_health_status()

        assert status.details["dependencies"]["async"] == {"available": True}
        assert "probe failed" in status.details["dependencies"]["broken"]["error"]

    async def test_startup_failure_is_unhealthy(self):
        manager = HealthManager("svc")
        manager.record_startup_failure(ValueError("bad"), component="startup_callback")
        status = await manager.get_health_status()
        assert status.status is HealthStatus.UNHEALTHY
        assert status.details["startup_failure"]["error_type"] == "ValueError"


@pytest.mark.component
class TestServiceApp:
    def test_startup_and_shutdown_callbacks_run(self):
        events: list[str] = []
        health = HealthManager("svc")

        async def startup() -> None:
            events.append("startup")
            health.mark_startup_complete()

        app = create_service_app(
            "svc",
            startup_callback=startup,
            shutdown_callback=lambda: events.append("shutdown"),
            health_manager=health,
        )
        with TestClient(app) as client:
            assert client.get("/health/ready").status_code == 200
        assert events == ["startup", "shutdown"]

    def test_failed_startup_reports_not_ready(self):
        def startup() -> None:
            raise RuntimeError("no config")

        app = create_service_app("svc", startup_callback=startup)
        with TestClient(app) as client:
            assert client.get("/health/live").status_code == 200
            assert client.get("/health/ready").status_code == 503

    def test_dependencies_route_reports_probes(self):
        health = HealthManager("svc")
        health.register_dependency("stt_providers", lambda: False)
        app = create_service_app("svc", health_manager=health)
        with TestClient(app) as client:
            body = client.get("/health/dependencies").json()
        assert body == {
            "service": "svc",
            "status": "degraded",
            "dependencies": {"stt_providers": {"available": False}},
        }

"""Liveness, readiness and dependency routes backed by a ``HealthManager``."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from voicegate.common.health import HealthManager


def build_health_router(service_name: str, health_manager: HealthManager) -> APIRouter:
    """Routes for orchestrators and load balancers.

    ``/health/live`` answers as long as the process serves requests.
    ``/health/ready`` is 503 until startup completes and after a startup
    failure. ``/health/dependencies`` reports each registered probe.
    """
    router = APIRouter(prefix="/health", tags=["health"])

    @router.get("/live")
    async def live() -> dict[str, str]:
        return {"status": "alive", "service": service_name}

    @router.get("/ready")
    async def ready() -> dict[str, Any]:
        check = await health_manager.get_health_status()
        if not check.ready:
            raise HTTPException(status_code=503, detail=f"Service {service_name} not ready")
        return {"status": check.status.value, "service": service_name, "details": check.details}

    @router.get("/dependencies")
    async def dependencies() -> dict[str, Any]:
        check = await health_manager.get_health_status()
        return {
            "service": service_name,
            "status": check.status.value,
            "dependencies": check.details.get("dependencies", {}),
        }

    return router


__all__ = ["build_health_router"]

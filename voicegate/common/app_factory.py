"""FastAPI app construction shared by voicegate services."""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from voicegate.common.health import HealthManager
from voicegate.common.health_endpoints import build_health_router
from voicegate.common.structured_logging import get_logger

logger = get_logger(__name__)

LifecycleHook = Callable[[], Any]


async def _run_hook(hook: LifecycleHook) -> None:
    result = hook()
    if inspect.isawaitable(result):
        await result


def create_service_app(
    service_name: str,
    service_version: str = "1.0.0",
    title: str | None = None,
    *,
    startup_callback: LifecycleHook | None = None,
    shutdown_callback: LifecycleHook | None = None,
    health_manager: HealthManager | None = None,
) -> FastAPI:
    """Create an app with health routes and a lifespan running the given hooks.

    A failing startup hook does not stop the server: the error is recorded on
    the health manager so ``/health/ready`` answers 503 with the cause. A
    failing shutdown hook is logged.

    Args:
        service_name: Used in log event names and health responses.
        service_version: Reported in the OpenAPI schema.
        title: App title, ``service_name`` by default.
        startup_callback: Sync or async hook run before serving.
        shutdown_callback: Sync or async hook run after the last request.
        health_manager: Backs the health routes; a fresh one when omitted.
    """
    health = health_manager or HealthManager(service_name)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if startup_callback is not None:
            try:
                await _run_hook(startup_callback)
            except Exception as exc:
                logger.error(f"{service_name}.startup_failed", error=str(exc))
                health.record_startup_failure(exc, component="startup_callback")
            else:
                logger.info(f"{service_name}.startup_complete")

        yield

        if shutdown_callback is not None:
            try:
                await _run_hook(shutdown_callback)
            except Exception as exc:
                logger.error(f"{service_name}.shutdown_failed", error=str(exc))
        logger.info(f"{service_name}.shutdown")

    app = FastAPI(title=title or service_name, version=service_version, lifespan=lifespan)
    app.state.service_name = service_name
    app.state.health_manager = health
    app.include_router(build_health_router(service_name, health))
    return app


__all__ = ["create_service_app"]

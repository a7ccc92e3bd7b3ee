"""Readiness tracking for the gateway process."""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .structured_logging import get_logger

Probe = Callable[[], Any]


class HealthStatus(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass(slots=True)
class HealthCheck:
    """Snapshot returned by ``HealthManager.get_health_status``."""

    status: HealthStatus
    ready: bool
    details: dict[str, Any] = field(default_factory=dict)


class HealthManager:
    """Startup flag plus named dependency probes.

    A probe is a sync or async callable returning truthy when the dependency
    is usable. Probes that raise or exceed ``probe_timeout_seconds`` count as
    unavailable. Any unavailable probe degrades the service without making it
    unready; a recorded startup failure makes it unhealthy and unready.
    """

    def __init__(self, service_name: str, probe_timeout_seconds: float = 2.0) -> None:
        self.service_name = service_name
        self._probes: dict[str, Probe] = {}
        self._probe_timeout = probe_timeout_seconds
        self._created = time.monotonic()
        self._ready = False
        self._failure: dict[str, Any] | None = None
        self._logger = get_logger(__name__, service_name=service_name)

    @property
    def startup_complete(self) -> bool:
        return self._ready

    def register_dependency(self, name: str, probe: Probe) -> None:
        self._probes[name] = probe
        self._logger.debug("health.dependency_registered", dependency=name)

    def mark_startup_complete(self) -> None:
        self._ready = True
        self._logger.info(
            "health.startup_complete",
            startup_seconds=round(time.monotonic() - self._created, 3),
        )

    def record_startup_failure(self, error: Exception, component: str) -> None:
        self._failure = {
            "component": component,
            "error": str(error),
            "error_type": type(error).__name__,
        }
        self._logger.error("health.startup_failure", **self._failure)

    async def _run_probe(self, name: str, probe: Probe) -> dict[str, Any]:
        try:
            outcome = probe()
            if inspect.isawaitable(outcome):
                outcome = await asyncio.wait_for(outcome, timeout=self._probe_timeout)
        except TimeoutError:
            return {"available": False, "error": "Timeout"}
        except Exception as exc:
            self._logger.warning(
                "health.dependency_error",
                dependency=name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return {"available": False, "error": f"{type(exc).__name__}: {exc}"}
        return {"available": bool(outcome)}

    async def get_health_status(self) -> HealthCheck:
        if self._failure is not None:
            return HealthCheck(
                HealthStatus.UNHEALTHY, ready=False, details={"startup_failure": self._failure}
            )

        names = list(self._probes)
        outcomes = await asyncio.gather(*(self._run_probe(n, self._probes[n]) for n in names))
        dependencies = dict(zip(names, outcomes))
        degraded = any(not outcome["available"] for outcome in outcomes)
        return HealthCheck(
            HealthStatus.DEGRADED if degraded else HealthStatus.HEALTHY,
            ready=self._ready,
            details={"startup_complete": self._ready, "dependencies": dependencies},
        )


__all__ = ["HealthCheck", "HealthManager", "HealthStatus"]

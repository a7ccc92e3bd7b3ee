"""structlog setup shared by the gateway and its helpers.

Events are dotted snake_case names (``session.opened``, ``vad.speech_end``)
with keyword fields. Per-connection logs carry ``correlation_id`` set to the
session id, either bound on the logger or through ``session_log_context``.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO, Any

import structlog

# Third-party loggers that are chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "multipart", "uvicorn.access")


def _service_stamper(service_name: str | None) -> Any:
    def stamp(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        if service_name:
            event_dict.setdefault("service", service_name)
        return event_dict

    return stamp


def configure_logging(
    level: str = "INFO",
    *,
    json_logs: bool = True,
    service_name: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Route structlog and stdlib logging through one handler.

    Args:
        level: Minimum level name; unknown names fall back to INFO.
        json_logs: JSON lines when True, the colored console renderer otherwise.
        service_name: Stamped as ``service`` on every event.
        stream: Output stream, stdout by default. Tests pass a StringIO.
    """
    numeric_level = logging.getLevelName((level or "INFO").upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        _service_stamper(service_name),
    ]
    if json_logs:
        renderer: Any = structlog.processors.JSONRenderer()
        pre_chain.append(structlog.processors.dict_tracebacks)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(
    name: str,
    *,
    correlation_id: str | None = None,
    service_name: str | None = None,
) -> structlog.stdlib.BoundLogger:
    """Return a logger, optionally bound to a session and service."""
    logger = structlog.stdlib.get_logger(name)
    bound: dict[str, Any] = {}
    if correlation_id:
        bound["correlation_id"] = correlation_id
    if service_name:
        bound["service"] = service_name
    return logger.bind(**bound) if bound else logger


@contextmanager
def session_log_context(session_id: str) -> Iterator[None]:
    """Tag every event logged in this context (and tasks it spawns) with the session.

    The previous ``correlation_id`` is restored on exit.
    """
    tokens = structlog.contextvars.bind_contextvars(correlation_id=session_id)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


class LogSampler:
    """Lets one in every ``every_n`` occurrences of a keyed event through.

    Used for events that can fire once per audio frame.
    """

    def __init__(self, every_n: int) -> None:
        self.every_n = every_n
        self._counts: dict[str, int] = {}

    def hit(self, key: str) -> bool:
        if self.every_n <= 1:
            return True
        count = self._counts.get(key, 0) + 1
        self._counts[key] = count
        return count % self.every_n == 1

    def count(self, key: str) -> int:
        return self._counts.get(key, 0)


__all__ = [
    "LogSampler",
    "configure_logging",
    "get_logger",
    "session_log_context",
]

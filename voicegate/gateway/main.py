"""Entrypoint for the transcription gateway."""

from __future__ import annotations

from voicegate.common.config import LoggingConfig
from voicegate.common.structured_logging import configure_logging

_logging_config = LoggingConfig()

# Configure logging before uvicorn and the app import their loggers
configure_logging(
    _logging_config.level,
    json_logs=_logging_config.json_logs,
    service_name=_logging_config.service_name,
)


def main() -> None:
    """Serve the gateway with uvicorn."""
    import uvicorn

    from voicegate.common.config import load_gateway_config

    from .app import create_gateway_app

    config = load_gateway_config()
    uvicorn.run(
        create_gateway_app(config),
        host=config.service.host,
        port=config.service.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()

"""Environment-driven configuration loading."""

from __future__ import annotations

from typing import Any

from voicegate.common.structured_logging import get_logger

from .base import ConfigError
from .presets import GatewayConfig

logger = get_logger(__name__)


def load_gateway_config(**overrides: Any) -> GatewayConfig:
    """Build the gateway configuration from overrides and environment variables.

    Args:
        **overrides: Per-group keyword dictionaries, e.g. ``vad={"speech_end_delay_ms": 500}``

    Returns:
        Validated gateway configuration
    """
    try:
        return GatewayConfig(**overrides)
    except ConfigError as exc:
        logger.error("config.load_failed", config_class="GatewayConfig", error=str(exc))
        raise

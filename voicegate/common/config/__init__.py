"""Environment-driven settings for the gateway.

``GatewayConfig`` groups the settings; ``load_gateway_config`` builds it and
logs the failure before re-raising when a value is invalid.
"""

from .base import BaseConfig, ConfigError, FieldDefinition, LoggingConfig, ServiceConfig, ValidationError
from .loader import load_gateway_config
from .presets import (
    INGEST_FORMATS,
    INGEST_SAMPLE_RATES,
    PCM_FORMAT,
    AudioIngestSettings,
    GatewayConfig,
    ProviderSettings,
    StorageSettings,
    VADSettings,
)

__all__ = [
    "INGEST_FORMATS",
    "INGEST_SAMPLE_RATES",
    "PCM_FORMAT",
    "AudioIngestSettings",
    "BaseConfig",
    "ConfigError",
    "FieldDefinition",
    "GatewayConfig",
    "LoggingConfig",
    "ProviderSettings",
    "ServiceConfig",
    "StorageSettings",
    "VADSettings",
    "ValidationError",
    "load_gateway_config",
]

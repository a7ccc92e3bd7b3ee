"""Transcription provider abstraction and backends."""

from .base import ProviderDescriptor, TranscriptionProvider, transcribe
from .credentials import ProviderCredentials, default_credentials
from .errors import (
    EmptyAudioError,
    ProviderConfigurationError,
    ProviderError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    TranscodeError,
    UnknownProviderError,
)
from .factory import ProviderRegistry, build_default_registry, parse_model_string
from .gemini_provider import GeminiTranscriptionProvider
from .openai_provider import OpenAITranscriptionProvider
from .whisper_provider import WhisperServiceProvider

__all__ = [
    "EmptyAudioError",
    "GeminiTranscriptionProvider",
    "OpenAITranscriptionProvider",
    "ProviderConfigurationError",
    "ProviderCredentials",
    "ProviderDescriptor",
    "ProviderError",
    "ProviderRegistry",
    "ProviderRequestError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "TranscodeError",
    "TranscriptionProvider",
    "UnknownProviderError",
    "WhisperServiceProvider",
    "build_default_registry",
    "default_credentials",
    "parse_model_string",
    "transcribe",
]

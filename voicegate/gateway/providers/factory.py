"""Provider registry and ``"<provider>[:<model>]"`` resolution."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import httpx

from voicegate.common.structured_logging import get_logger

from .base import ProviderDescriptor, TranscriptionProvider
from .credentials import ProviderCredentials, default_credentials
from .errors import ProviderConfigurationError, ProviderUnavailableError, UnknownProviderError
from .gemini_provider import GeminiTranscriptionProvider
from .openai_provider import OpenAITranscriptionProvider
from .whisper_provider import WhisperServiceProvider

logger = get_logger(__name__)

ProviderConstructor = Callable[[ProviderCredentials], TranscriptionProvider]

_DEFAULT_MODEL_ALIASES = {"", "default"}


def parse_model_string(config_string: str) -> tuple[str, str | None]:
    """Split ``"provider:model"`` into its parts.

    Only the first colon separates, so model names may contain colons. A
    missing, empty or ``"default"`` model yields None.

    Raises:
        ProviderConfigurationError: the provider part is empty.
    """
    provider_name, _, model_name = (config_string or "").strip().partition(":")
    provider_name = provider_name.strip().lower()
    if not provider_name:
        raise ProviderConfigurationError("STT model configuration is empty")
    model_name = model_name.strip()
    if model_name.lower() in _DEFAULT_MODEL_ALIASES:
        return provider_name, None
    return provider_name, model_name


class ProviderRegistry:
    """Maps provider names to constructors bound to one set of credentials."""

    def __init__(self, credentials: ProviderCredentials | None = None) -> None:
        self._credentials = credentials or default_credentials()
        self._constructors: dict[str, ProviderConstructor] = {}

    @property
    def credentials(self) -> ProviderCredentials:
        return self._credentials

    def register(self, name: str, constructor: ProviderConstructor) -> None:
        key = name.strip().lower()
        if key in self._constructors:
            raise ValueError(f"Provider '{key}' is already registered")
        self._constructors[key] = constructor

    def names(self) -> list[str]:
        return sorted(self._constructors)

    def resolve(
        self,
        config_string: str,
        *,
        request_options: Mapping[str, Any] | None = None,
    ) -> tuple[TranscriptionProvider, ProviderDescriptor]:
        """Build a provider for a session.

        Raises:
            UnknownProviderError: no constructor is registered for the name.
            ProviderUnavailableError: the provider reports itself unavailable.
        """
        provider_name, model_name = parse_model_string(config_string)
        constructor = self._constructors.get(provider_name)
        if constructor is None:
            raise UnknownProviderError(provider_name, self.names())

        provider = constructor(self._credentials)
        if not provider.is_available():
            raise ProviderUnavailableError(provider_name)

        options: dict[str, Any] = {}
        if self._credentials.language:
            options["language"] = self._credentials.language
        options.update(request_options or {})

        descriptor = ProviderDescriptor(
            provider_name=provider.name,
            model_name=model_name or provider.default_model,
            request_options=options,
        )
        logger.debug(
            "provider.resolved",
            config_string=config_string,
            provider=descriptor.provider_name,
            model=descriptor.model_name,
        )
        return provider, descriptor

    def available_providers(self) -> list[dict[str, Any]]:
        """Describe every registered provider that is currently usable."""
        listing: list[dict[str, Any]] = []
        for name in self.names():
            provider = self._constructors[name](self._credentials)
            if not provider.is_available():
                continue
            listing.append(
                {
                    "name": provider.name,
                    "displayName": provider.display_name,
                    "supportedFormats": list(provider.supported_formats()),
                    "defaultModel": provider.default_model,
                }
            )
        return listing


def build_default_registry(
    credentials: ProviderCredentials | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> ProviderRegistry:
    """Registry with the OpenAI, Gemini and self-hosted Whisper backends.

    ``client`` is shared by every provider built from the registry; it is
    mainly a hook for tests.
    """
    registry = ProviderRegistry(credentials)
    registry.register(
        "openai", lambda creds: OpenAITranscriptionProvider(creds, client=client)
    )
    registry.register(
        "gemini", lambda creds: GeminiTranscriptionProvider(creds, client=client)
    )
    registry.register(
        "whisper", lambda creds: WhisperServiceProvider(creds, client=client)
    )
    return registry


__all__ = [
    "ProviderConstructor",
    "ProviderRegistry",
    "build_default_registry",
    "parse_model_string",
]

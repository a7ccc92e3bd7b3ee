"""Exceptions raised by transcription providers and their factory."""

from __future__ import annotations


class ProviderError(Exception):
    """Base class for provider failures."""


class ProviderConfigurationError(ProviderError):
    """A provider cannot be resolved for a session."""


class UnknownProviderError(ProviderConfigurationError):
    """The configuration string names no registered provider."""

    def __init__(self, provider_name: str, known: list[str]) -> None:
        self.provider_name = provider_name
        self.known = known
        super().__init__(
            f"Unknown STT provider '{provider_name}'. Known providers: {', '.join(known)}"
        )


class ProviderUnavailableError(ProviderConfigurationError):
    """The provider is registered but its credentials or endpoint are missing."""

    def __init__(self, provider_name: str) -> None:
        self.provider_name = provider_name
        super().__init__(
            f"STT provider '{provider_name}' is not available: check its configuration"
        )


class TranscodeError(ProviderError):
    """ffmpeg could not convert a segment."""


class EmptyAudioError(ProviderError):
    """The segment carried no audio bytes."""

    def __init__(self) -> None:
        super().__init__("No audio data in segment")


class ProviderTimeoutError(ProviderError):
    """The remote call did not settle within the request deadline."""


class ProviderRequestError(ProviderError):
    """Transport failure or error response from the remote backend."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


__all__ = [
    "EmptyAudioError",
    "ProviderConfigurationError",
    "ProviderError",
    "ProviderRequestError",
    "ProviderTimeoutError",
    "TranscodeError",
    "UnknownProviderError",
    "ProviderUnavailableError",
]

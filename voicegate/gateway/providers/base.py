"""Transcription provider contract.

Backends implement ``TranscriptionProvider``; callers go through
``transcribe`` which turns one request into exactly one ``on_result`` or
``on_error`` call.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from voicegate.common.structured_logging import get_logger
from voicegate.gateway.recorder import SpeechSegment

from .errors import ProviderError, ProviderRequestError, ProviderTimeoutError

logger = get_logger(__name__)

ResultCallback = Callable[[str], None]
ErrorCallback = Callable[[ProviderError], None]


@dataclass(frozen=True, slots=True)
class ProviderDescriptor:
    """Provider and model resolved for one session."""

    provider_name: str
    model_name: str
    request_options: Mapping[str, Any] = field(default_factory=dict)

    @property
    def config_string(self) -> str:
        return f"{self.provider_name}:{self.model_name}"

    def transcribe_options(self) -> dict[str, Any]:
        return {**self.request_options, "model": self.model_name}


@runtime_checkable
class TranscriptionProvider(Protocol):
    """A remote speech-to-text backend."""

    @property
    def name(self) -> str:
        """Stable identifier, also the registry key."""
        ...

    @property
    def display_name(self) -> str: ...

    @property
    def default_model(self) -> str: ...

    def supported_formats(self) -> tuple[str, ...]:
        """Container formats the backend accepts without transcoding."""
        ...

    def is_available(self) -> bool:
        """Whether credentials or endpoint configuration are present."""
        ...

    async def request_transcript(
        self, segment: SpeechSegment, options: Mapping[str, Any]
    ) -> str:
        """Send one segment and return the recognized text.

        Raises:
            ProviderError: on empty audio, transport or remote failure.
        """
        ...

    async def aclose(self) -> None: ...


async def transcribe(
    provider: TranscriptionProvider,
    segment: SpeechSegment,
    on_result: ResultCallback,
    on_error: ErrorCallback,
    options: Mapping[str, Any] | None = None,
    *,
    timeout_seconds: float,
    correlation_id: str | None = None,
) -> None:
    """Run one transcription and report it through exactly one callback.

    The request is bounded by ``timeout_seconds``. Cancelling the awaiting
    task delivers neither callback.
    """
    log = get_logger(__name__, correlation_id=correlation_id)
    error: ProviderError
    try:
        text = await asyncio.wait_for(
            provider.request_transcript(segment, options or {}),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError:
        error = ProviderTimeoutError(
            f"{provider.display_name} did not respond within {timeout_seconds:g}s"
        )
    except ProviderError as exc:
        error = exc
    except Exception as exc:
        log.exception("provider.unexpected_error", provider=provider.name)
        error = ProviderRequestError(f"{provider.display_name} failed: {exc}")
    else:
        on_result(text)
        return

    log.warning(
        "provider.transcription_failed",
        provider=provider.name,
        error_type=type(error).__name__,
        error=str(error),
    )
    on_error(error)


__all__ = [
    "ErrorCallback",
    "ProviderDescriptor",
    "ResultCallback",
    "TranscriptionProvider",
    "transcribe",
]

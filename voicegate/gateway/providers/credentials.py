"""Process-wide, read-only provider credentials."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from voicegate.common.config import ProviderSettings


@dataclass(frozen=True, slots=True)
class ProviderCredentials:
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    whisper_service_url: str = ""
    language: str = ""
    request_timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: ProviderSettings) -> ProviderCredentials:
        return cls(
            openai_api_key=settings.openai_api_key.strip(),
            openai_base_url=settings.openai_base_url.rstrip("/"),
            gemini_api_key=settings.gemini_api_key.strip(),
            gemini_base_url=settings.gemini_base_url.rstrip("/"),
            whisper_service_url=settings.whisper_service_url.strip().rstrip("/"),
            language=settings.language.strip(),
            request_timeout_seconds=settings.request_timeout_seconds,
        )

    def __repr__(self) -> str:
        return (
            f"ProviderCredentials(openai={'set' if self.openai_api_key else 'unset'}, "
            f"gemini={'set' if self.gemini_api_key else 'unset'}, "
            f"whisper_service_url={self.whisper_service_url!r})"
        )


@lru_cache(maxsize=1)
def default_credentials() -> ProviderCredentials:
    """Credentials read from the environment on first use."""
    return ProviderCredentials.from_settings(ProviderSettings())


__all__ = ["ProviderCredentials", "default_credentials"]

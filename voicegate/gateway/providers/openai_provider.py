"""OpenAI audio transcription backend."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from voicegate.common.structured_logging import get_logger
from voicegate.gateway.recorder import SpeechSegment

from .credentials import ProviderCredentials
from .http_client import ProviderHttpClient
from .transcode import Transcoder, prepare_upload, transcode_to_wav

logger = get_logger(__name__)


class OpenAITranscriptionProvider:
    """Posts segments to ``/audio/transcriptions``."""

    name = "openai"
    display_name = "OpenAI Whisper"
    default_model = "whisper-1"
    _formats = ("webm", "wav", "mp3", "m4a", "flac", "ogg")

    def __init__(
        self,
        credentials: ProviderCredentials,
        *,
        client: httpx.AsyncClient | None = None,
        transcoder: Transcoder = transcode_to_wav,
    ) -> None:
        self._api_key = credentials.openai_api_key
        self._endpoint = f"{credentials.openai_base_url}/audio/transcriptions"
        self._transcoder = transcoder
        self._http = ProviderHttpClient(
            self.name, timeout=credentials.request_timeout_seconds, client=client
        )

    def supported_formats(self) -> tuple[str, ...]:
        return self._formats

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def request_transcript(
        self, segment: SpeechSegment, options: Mapping[str, Any]
    ) -> str:
        upload = await prepare_upload(
            segment, self._formats, logger=logger, transcoder=self._transcoder
        )
        data = {
            "model": options.get("model") or self.default_model,
            "response_format": "text",
        }
        if options.get("language"):
            data["language"] = options["language"]

        response = await self._http.post(
            self._endpoint,
            headers={"Authorization": f"Bearer {self._api_key}"},
            files={"file": (upload.filename("audio"), upload.data, upload.mime_type)},
            data=data,
        )
        return response.text.strip()

    async def aclose(self) -> None:
        await self._http.aclose()


__all__ = ["OpenAITranscriptionProvider"]

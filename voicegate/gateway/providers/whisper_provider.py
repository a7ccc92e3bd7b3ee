"""Self-hosted Whisper HTTP service backend."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from voicegate.common.structured_logging import get_logger
from voicegate.gateway.recorder import SpeechSegment

from .credentials import ProviderCredentials
from .errors import ProviderRequestError
from .http_client import ProviderHttpClient
from .transcode import Transcoder, prepare_upload, transcode_to_wav

logger = get_logger(__name__)


class WhisperServiceProvider:
    """Posts WAV segments to ``{WHISPER_SERVICE_URL}/transcribe``."""

    name = "whisper"
    display_name = "Self-hosted Whisper"
    default_model = "default"
    _formats = ("wav",)

    def __init__(
        self,
        credentials: ProviderCredentials,
        *,
        client: httpx.AsyncClient | None = None,
        transcoder: Transcoder = transcode_to_wav,
    ) -> None:
        self._base_url = credentials.whisper_service_url
        self._transcoder = transcoder
        self._http = ProviderHttpClient(
            self.name, timeout=credentials.request_timeout_seconds, client=client
        )

    def supported_formats(self) -> tuple[str, ...]:
        return self._formats

    def is_available(self) -> bool:
        return bool(self._base_url)

    async def request_transcript(
        self, segment: SpeechSegment, options: Mapping[str, Any]
    ) -> str:
        upload = await prepare_upload(
            segment, self._formats, logger=logger, transcoder=self._transcoder
        )
        params: dict[str, str] = {}
        model = options.get("model")
        if model and model != self.default_model:
            params["model"] = model
        if options.get("language"):
            params["language"] = options["language"]

        response = await self._http.post(
            f"{self._base_url}/transcribe",
            files={"file": (upload.filename(), upload.data, upload.mime_type)},
            params=params,
        )
        try:
            text = response.json()["text"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ProviderRequestError("Whisper service returned no text field") from exc
        return str(text).strip()

    async def aclose(self) -> None:
        await self._http.aclose()


__all__ = ["WhisperServiceProvider"]

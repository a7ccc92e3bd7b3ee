"""Google Gemini multimodal transcription backend."""

from __future__ import annotations

import base64
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

_PROMPT = (
    "Transcribe this audio recording verbatim. "
    "Return only the transcribed text without commentary."
)


class GeminiTranscriptionProvider:
    """Sends segments inline to ``models/{model}:generateContent``.

    Gemini does not accept WebM, so browser recordings are transcoded first.
    """

    name = "gemini"
    display_name = "Google Gemini"
    default_model = "gemini-2.5-flash"
    _formats = ("wav", "mp3", "ogg", "flac", "aac")

    def __init__(
        self,
        credentials: ProviderCredentials,
        *,
        client: httpx.AsyncClient | None = None,
        transcoder: Transcoder = transcode_to_wav,
    ) -> None:
        self._api_key = credentials.gemini_api_key
        self._base_url = credentials.gemini_base_url
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
        model = options.get("model") or self.default_model
        prompt = _PROMPT
        if options.get("language"):
            prompt = f"{prompt} The speech is in language '{options['language']}'."

        payload = {
            "contents": [
                {
                    "parts": [
                        {
                            "inline_data": {
                                "mime_type": upload.mime_type,
                                "data": base64.b64encode(upload.data).decode("ascii"),
                            }
                        },
                        {"text": prompt},
                    ]
                }
            ]
        }
        response = await self._http.post(
            f"{self._base_url}/models/{model}:generateContent",
            headers={"x-goog-api-key": self._api_key},
            json=payload,
        )
        return _extract_text(response.json())

    async def aclose(self) -> None:
        await self._http.aclose()


def _extract_text(body: Any) -> str:
    try:
        candidates = body["candidates"]
    except (KeyError, TypeError) as exc:
        raise ProviderRequestError("Gemini response carried no candidates") from exc
    if not candidates:
        return ""
    parts = candidates[0].get("content", {}).get("parts", [])
    return "".join(part.get("text", "") for part in parts).strip()


__all__ = ["GeminiTranscriptionProvider"]

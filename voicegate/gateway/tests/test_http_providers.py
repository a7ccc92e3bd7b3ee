"""Tests for the OpenAI, Gemini and self-hosted Whisper adapters."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from voicegate.gateway.providers import (
    EmptyAudioError,
    GeminiTranscriptionProvider,
    OpenAITranscriptionProvider,
    ProviderCredentials,
    ProviderRequestError,
    ProviderTimeoutError,
    TranscodeError,
    WhisperServiceProvider,
)
from voicegate.gateway.recorder import SpeechSegment
from voicegate.tests.utils import pcm_frame

CREDENTIALS = ProviderCredentials(
    openai_api_key="sk-test",
    openai_base_url="https://openai.test/v1",
    gemini_api_key="gm-test",
    gemini_base_url="https://gemini.test/v1beta",
    whisper_service_url="http://whisper.test",
)


def pcm_segment() -> SpeechSegment:
    return SpeechSegment(
        frames=(pcm_frame(0.3, samples=160), pcm_frame(0.3, samples=160)),
        audio_format="pcm_s16le",
        sample_rate=16000,
        start_time=1700000000.0,
        duration_ms=20.0,
    )


def webm_segment() -> SpeechSegment:
    return SpeechSegment(
        frames=(b"\x1aE\xdf\xa3header", b"cluster"),
        audio_format="webm",
        sample_rate=48000,
        start_time=1700000000.0,
        duration_ms=900.0,
    )


def empty_segment() -> SpeechSegment:
    return SpeechSegment(
        frames=(), audio_format="pcm_s16le", sample_rate=16000, start_time=0.0, duration_ms=900.0
    )


class Capture:
    """MockTransport handler that records requests and replays a response."""

    def __init__(self, response: httpx.Response | Exception) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def fake_transcoder(data: bytes, source_format: str) -> bytes:
    return b"RIFF-converted-" + source_format.encode()


def failing_transcoder(data: bytes, source_format: str) -> bytes:
    raise TranscodeError("no ffmpeg")


@pytest.mark.unit
class TestOpenAIProvider:
    async def test_posts_multipart_and_returns_text(self):
        capture = Capture(httpx.Response(200, text="  hello there \n"))
        provider = OpenAITranscriptionProvider(CREDENTIALS, client=capture.client())

        text = await provider.request_transcript(
            pcm_segment(), {"model": "whisper-1", "language": "en"}
        )

        assert text == "hello there"
        request = capture.requests[0]
        assert str(request.url) == "https://openai.test/v1/audio/transcriptions"
        assert request.headers["authorization"] == "Bearer sk-test"
        body = request.content
        assert b'name="model"' in body and b"whisper-1" in body
        assert b'name="language"' in body
        assert b'filename="audio.wav"' in body
        assert b"RIFF" in body

    async def test_webm_is_sent_natively(self):
        capture = Capture(httpx.Response(200, text="hi"))
        provider = OpenAITranscriptionProvider(
            CREDENTIALS, client=capture.client(), transcoder=failing_transcoder
        )
        await provider.request_transcript(webm_segment(), {})
        body = capture.requests[0].content
        assert b'filename="audio.webm"' in body
        assert b"audio/webm" in body

    async def test_http_error_maps_to_request_error(self):
        capture = Capture(httpx.Response(401, json={"error": {"message": "bad key"}}))
        provider = OpenAITranscriptionProvider(CREDENTIALS, client=capture.client())

        with pytest.raises(ProviderRequestError) as excinfo:
            await provider.request_transcript(pcm_segment(), {})

        assert excinfo.value.status_code == 401
        assert "bad key" in str(excinfo.value)

    async def test_transport_error_maps_to_request_error(self):
        capture = Capture(httpx.ConnectError("refused"))
        provider = OpenAITranscriptionProvider(CREDENTIALS, client=capture.client())
        with pytest.raises(ProviderRequestError, match="refused"):
            await provider.request_transcript(pcm_segment(), {})

    async def test_transport_timeout_maps_to_timeout_error(self):
        capture = Capture(httpx.ReadTimeout("slow"))
        provider = OpenAITranscriptionProvider(CREDENTIALS, client=capture.client())
        with pytest.raises(ProviderTimeoutError):
            await provider.request_transcript(pcm_segment(), {})

    async def test_empty_segment_never_hits_network(self):
        capture = Capture(httpx.Response(200, text="unused"))
        provider = OpenAITranscriptionProvider(CREDENTIALS, client=capture.client())
        with pytest.raises(EmptyAudioError):
            await provider.request_transcript(empty_segment(), {})
        assert capture.requests == []

    def test_availability_follows_api_key(self):
        assert OpenAITranscriptionProvider(CREDENTIALS).is_available()
        assert not OpenAITranscriptionProvider(ProviderCredentials()).is_available()

    async def test_injected_client_is_not_closed(self):
        client = Capture(httpx.Response(200, text="")).client()
        provider = OpenAITranscriptionProvider(CREDENTIALS, client=client)
        await provider.aclose()
        assert not client.is_closed
        await client.aclose()


@pytest.mark.unit
class TestGeminiProvider:
    async def test_inline_audio_and_joined_text(self):
        reply = {
            "candidates": [
                {"content": {"parts": [{"text": "good "}, {"text": "morning"}]}}
            ]
        }
        capture = Capture(httpx.Response(200, json=reply))
        provider = GeminiTranscriptionProvider(CREDENTIALS, client=capture.client())
        segment = pcm_segment()

        text = await provider.request_transcript(segment, {"model": "gemini-2.0-flash"})

        assert text == "good morning"
        request = capture.requests[0]
        assert request.url.path == "/v1beta/models/gemini-2.0-flash:generateContent"
        assert request.headers["x-goog-api-key"] == "gm-test"
        assert "key" not in request.url.params
        payload = json.loads(request.content)
        inline = payload["contents"][0]["parts"][0]["inline_data"]
        assert inline["mime_type"] == "audio/wav"
        assert base64.b64decode(inline["data"]) == segment.encode()

    async def test_webm_is_transcoded_first(self):
        capture = Capture(httpx.Response(200, json={"candidates": []}))
        provider = GeminiTranscriptionProvider(
            CREDENTIALS, client=capture.client(), transcoder=fake_transcoder
        )

        text = await provider.request_transcript(webm_segment(), {})

        assert text == ""
        inline = json.loads(capture.requests[0].content)["contents"][0]["parts"][0]["inline_data"]
        assert inline["mime_type"] == "audio/wav"
        assert base64.b64decode(inline["data"]) == b"RIFF-converted-webm"

    async def test_transcode_failure_falls_back_to_original_bytes(self):
        capture = Capture(httpx.Response(200, json={"candidates": []}))
        provider = GeminiTranscriptionProvider(
            CREDENTIALS, client=capture.client(), transcoder=failing_transcoder
        )
        segment = webm_segment()

        await provider.request_transcript(segment, {})

        inline = json.loads(capture.requests[0].content)["contents"][0]["parts"][0]["inline_data"]
        assert inline["mime_type"] == "audio/webm"
        assert base64.b64decode(inline["data"]) == segment.encode()

    async def test_malformed_response(self):
        capture = Capture(httpx.Response(200, json={"promptFeedback": {}}))
        provider = GeminiTranscriptionProvider(CREDENTIALS, client=capture.client())
        with pytest.raises(ProviderRequestError, match="no candidates"):
            await provider.request_transcript(pcm_segment(), {})


@pytest.mark.unit
class TestWhisperServiceProvider:
    async def test_posts_wav_and_reads_json_text(self):
        capture = Capture(httpx.Response(200, json={"text": " testing one two "}))
        provider = WhisperServiceProvider(CREDENTIALS, client=capture.client())

        text = await provider.request_transcript(
            pcm_segment(), {"model": "large-v3", "language": "de"}
        )

        assert text == "testing one two"
        request = capture.requests[0]
        assert request.url.path == "/transcribe"
        assert request.url.params["model"] == "large-v3"
        assert request.url.params["language"] == "de"
        assert b'filename="segment.wav"' in request.content

    async def test_default_model_is_not_forwarded(self):
        capture = Capture(httpx.Response(200, json={"text": "x"}))
        provider = WhisperServiceProvider(CREDENTIALS, client=capture.client())
        await provider.request_transcript(pcm_segment(), {"model": "default"})
        assert "model" not in capture.requests[0].url.params

    async def test_missing_text_field(self):
        capture = Capture(httpx.Response(200, json={"segments": []}))
        provider = WhisperServiceProvider(CREDENTIALS, client=capture.client())
        with pytest.raises(ProviderRequestError):
            await provider.request_transcript(pcm_segment(), {})

    def test_availability_follows_service_url(self):
        assert WhisperServiceProvider(CREDENTIALS).is_available()
        assert not WhisperServiceProvider(ProviderCredentials()).is_available()

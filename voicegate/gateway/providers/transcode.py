"""Best-effort audio conversion for providers that cannot take a segment as-is."""

from __future__ import annotations

import asyncio
import tempfile
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import ffmpeg

from voicegate.gateway.recorder import SpeechSegment

from .errors import EmptyAudioError, TranscodeError

MIME_TYPES = {
    "wav": "audio/wav",
    "webm": "audio/webm",
    "ogg": "audio/ogg",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "flac": "audio/flac",
    "aac": "audio/aac",
}

TARGET_SAMPLE_RATE = 16000

Transcoder = Callable[[bytes, str], bytes]


@dataclass(frozen=True, slots=True)
class AudioUpload:
    """Bytes ready to send plus their container format."""

    data: bytes
    audio_format: str

    @property
    def mime_type(self) -> str:
        return MIME_TYPES.get(self.audio_format, "application/octet-stream")

    def filename(self, stem: str = "segment") -> str:
        return f"{stem}.{self.audio_format}"


def transcode_to_wav(data: bytes, source_format: str) -> bytes:
    """Convert ``data`` to 16 kHz mono 16-bit WAV with ffmpeg.

    Working files live in a temporary directory that is removed on every
    exit path.

    Raises:
        TranscodeError: ffmpeg is missing or rejected the input.
    """
    with tempfile.TemporaryDirectory(prefix="voicegate-transcode-") as workdir:
        source = Path(workdir) / f"input.{source_format}"
        target = Path(workdir) / "output.wav"
        source.write_bytes(data)
        try:
            (
                ffmpeg.input(str(source))
                .output(
                    str(target),
                    format="wav",
                    acodec="pcm_s16le",
                    ac=1,
                    ar=TARGET_SAMPLE_RATE,
                )
                .overwrite_output()
                .run(capture_stdout=True, capture_stderr=True)
            )
        except ffmpeg.Error as exc:
            stderr = (exc.stderr or b"").decode("utf-8", errors="replace").strip()
            raise TranscodeError(
                f"ffmpeg failed for {source_format}: {stderr[-300:]}"
            ) from exc
        except FileNotFoundError as exc:
            raise TranscodeError("ffmpeg executable not found") from exc
        if not target.exists() or target.stat().st_size == 0:
            raise TranscodeError(f"ffmpeg produced no output for {source_format}")
        return target.read_bytes()


async def prepare_upload(
    segment: SpeechSegment,
    supported_formats: Iterable[str],
    *,
    logger: Any,
    transcoder: Transcoder = transcode_to_wav,
) -> AudioUpload:
    """Encode a segment in a format the provider accepts.

    When the native container is unsupported the segment is transcoded to
    WAV off the event loop; if that fails the original bytes are returned.

    Raises:
        EmptyAudioError: the segment has no audio.
    """
    if segment.is_empty:
        raise EmptyAudioError()

    data = segment.encode()
    audio_format = segment.container_format
    if audio_format in tuple(supported_formats):
        return AudioUpload(data=data, audio_format=audio_format)

    try:
        converted = await asyncio.to_thread(transcoder, data, audio_format)
    except TranscodeError as exc:
        logger.warning(
            "provider.transcode_failed",
            source_format=audio_format,
            error=str(exc),
            fallback="original_bytes",
        )
        return AudioUpload(data=data, audio_format=audio_format)

    logger.debug(
        "provider.transcoded",
        source_format=audio_format,
        source_bytes=len(data),
        output_bytes=len(converted),
    )
    return AudioUpload(data=converted, audio_format="wav")


__all__ = ["AudioUpload", "MIME_TYPES", "Transcoder", "prepare_upload", "transcode_to_wav"]

"""Durable sink for saved session audio."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from voicegate.common.config import PCM_FORMAT
from voicegate.common.structured_logging import get_logger
from voicegate.gateway.recorder import pcm_to_wav

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SavedRecording:
    filename: str
    path: str
    byte_length: int


class RecordingStore(Protocol):
    async def save(
        self,
        audio: bytes,
        *,
        client_id: str,
        audio_format: str,
        sample_rate: int,
    ) -> SavedRecording: ...


class LocalRecordingStore:
    """Writes recordings under a directory as ``audio_{client}_{ms}.{ext}``.

    PCM is stored as WAV; compressed streams keep their container.
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    async def save(
        self,
        audio: bytes,
        *,
        client_id: str,
        audio_format: str,
        sample_rate: int,
    ) -> SavedRecording:
        """Persist ``audio`` off the event loop.

        Raises:
            OSError: the file could not be written.
        """
        if audio_format == PCM_FORMAT:
            payload = pcm_to_wav(audio, sample_rate=sample_rate)
            extension = "wav"
        else:
            payload = audio
            extension = audio_format
        filename = f"audio_{client_id}_{int(time.time() * 1000)}.{extension}"
        path = self._directory / filename
        await asyncio.to_thread(self._write, path, payload)
        logger.info(
            "storage.recording_saved",
            client_id=client_id,
            filename=filename,
            byte_length=len(payload),
        )
        return SavedRecording(filename=filename, path=str(path), byte_length=len(payload))

    def _write(self, path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)


__all__ = ["LocalRecordingStore", "RecordingStore", "SavedRecording"]

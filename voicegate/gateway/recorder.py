"""Segment recording between detected speech boundaries."""

from __future__ import annotations

import io
import wave
from collections import deque
from dataclasses import dataclass, replace

from voicegate.common.config import PCM_FORMAT
from voicegate.common.structured_logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SpeechSegment:
    """One utterance's audio plus metadata.

    ``frames`` holds the inbound chunks in arrival order. ``start_time`` is a
    wall-clock epoch timestamp of the speech onset. ``header`` is the
    initialization chunk of a compressed stream (empty for PCM), written ahead
    of the frames so the segment decodes on its own.
    """

    frames: tuple[bytes, ...]
    audio_format: str
    sample_rate: int
    start_time: float
    duration_ms: float
    channels: int = 1
    header: bytes = b""

    @property
    def byte_length(self) -> int:
        return len(self.header) + sum(len(frame) for frame in self.frames)

    @property
    def is_empty(self) -> bool:
        return not any(self.frames)

    @property
    def container_format(self) -> str:
        """Format of ``encode()`` output."""
        return "wav" if self.audio_format == PCM_FORMAT else self.audio_format

    def encode(self) -> bytes:
        """Concatenate the frames into one self-contained blob.

        PCM is wrapped in a WAV container; compressed chunks are joined behind
        the stream header.
        """
        payload = b"".join(self.frames)
        if self.audio_format != PCM_FORMAT:
            return self.header + payload
        return pcm_to_wav(payload, sample_rate=self.sample_rate, channels=self.channels)

    def merged_with(self, later: SpeechSegment) -> SpeechSegment:
        """Append a later segment of the same stream to this one.

        The later segment's header is dropped; both share the stream's header.
        """
        return replace(
            self,
            frames=self.frames + later.frames,
            duration_ms=self.duration_ms + later.duration_ms,
        )


def pcm_to_wav(pcm: bytes, *, sample_rate: int, channels: int = 1) -> bytes:
    """Encode signed 16-bit little-endian PCM into a WAV container."""
    usable = len(pcm) - (len(pcm) % (2 * channels))
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(pcm[:usable])
    return buffer.getvalue()


class SegmentRecorder:
    """Accumulates chunks from a speech start until the matching speech end.

    Chunks arriving outside an utterance are held in a short pre-roll window
    so that audio between the speech onset and the debounced start event is
    not lost.

    Compressed containers (webm, ogg) carry their header only in the first
    chunk of the stream. That chunk is kept as ``header`` for the recorder's
    lifetime and stamped onto every segment.
    """

    def __init__(
        self,
        audio_format: str,
        sample_rate: int,
        *,
        pre_roll_seconds: float = 0.5,
        header: bytes = b"",
    ) -> None:
        self.audio_format = audio_format
        self.sample_rate = sample_rate
        self.header = header
        self._pre_roll_seconds = pre_roll_seconds
        self._pre_roll: deque[tuple[float, bytes]] = deque()
        self._frames: list[bytes] = []
        self._recording = False

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def buffered_bytes(self) -> int:
        return sum(len(frame) for frame in self._frames)

    @property
    def expects_header(self) -> bool:
        return self.audio_format != PCM_FORMAT and not self.header

    def append(self, frame: bytes, timestamp: float) -> None:
        if self.expects_header:
            self.header = frame
            logger.debug("recorder.header_captured", bytes=len(frame))
            return
        if self._recording:
            self._frames.append(frame)
            return
        self._pre_roll.append((timestamp, frame))
        horizon = timestamp - self._pre_roll_seconds
        while self._pre_roll and self._pre_roll[0][0] < horizon:
            self._pre_roll.popleft()

    def start(self, onset: float) -> None:
        """Begin a fresh accumulation seeded with pre-roll chunks since ``onset``."""
        self._frames = [frame for ts, frame in self._pre_roll if ts >= onset]
        self._pre_roll.clear()
        self._recording = True

    def finalize(self, *, duration_ms: float, start_time: float) -> SpeechSegment:
        """Close the current accumulation into a segment and clear the buffer.

        A finalize without a preceding start yields an empty segment.
        """
        segment = SpeechSegment(
            frames=tuple(self._frames),
            audio_format=self.audio_format,
            sample_rate=self.sample_rate,
            start_time=start_time,
            duration_ms=duration_ms,
            header=self.header,
        )
        self._frames = []
        self._recording = False
        logger.debug(
            "recorder.segment_finalized",
            frames=len(segment.frames),
            byte_length=segment.byte_length,
            duration_ms=round(duration_ms, 1),
        )
        return segment

    def discard(self) -> None:
        """Drop an utterance that ended without producing a segment."""
        if self._recording:
            logger.debug(
                "recorder.segment_discarded",
                frames=len(self._frames),
                bytes=self.buffered_bytes,
            )
        self._frames = []
        self._recording = False

    def reset(self) -> None:
        """Drop buffered audio; the stream header survives."""
        self._frames = []
        self._pre_roll.clear()
        self._recording = False


class RollingBuffer:
    """Byte-capped FIFO of every chunk received while listening.

    ``header`` (a compressed stream's first chunk) is never evicted and leads
    every non-empty drain, so saved audio stays decodable.
    """

    def __init__(self, max_bytes: int) -> None:
        self._max_bytes = max_bytes
        self.header = b""
        self._chunks: deque[bytes] = deque()
        self._total = 0

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def total_bytes(self) -> int:
        return self._total

    def append(self, chunk: bytes) -> None:
        if self._max_bytes <= 0:
            return
        self._chunks.append(chunk)
        self._total += len(chunk)
        while self._total > self._max_bytes and self._chunks:
            self._total -= len(self._chunks.popleft())

    def drain(self) -> bytes:
        """Return the buffered bytes behind the header and empty the buffer."""
        data = b"".join(self._chunks)
        self._chunks.clear()
        self._total = 0
        return self.header + data if data else data

    def reset(self) -> None:
        """Forget the buffered audio and the stream header."""
        self.drain()
        self.header = b""

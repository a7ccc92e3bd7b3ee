"""Frame-level signal energy for driving voice activity detection.

The analyzer turns one inbound audio chunk into a single normalized volume
value. Only raw PCM can be analysed chunk by chunk; compressed containers
carry no decodable boundaries per chunk, so sessions using them rely on
levels reported by the client instead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from voicegate.common.config import INGEST_FORMATS, INGEST_SAMPLE_RATES, PCM_FORMAT
from voicegate.common.structured_logging import get_logger

logger = get_logger(__name__)

_INT16_FULL_SCALE = 32768.0


class AudioAnalysisError(Exception):
    """Raised when an analysis pipeline cannot be built for an audio stream."""


@dataclass(frozen=True, slots=True)
class VolumeSample:
    """Normalized volume in [0, 1] observed at a monotonic timestamp (seconds)."""

    volume: float
    timestamp: float


def clamp_volume(value: float) -> float:
    """Clamp a reported level into [0, 1]; non-finite input reads as silence."""
    if not math.isfinite(value):
        return 0.0
    return min(1.0, max(0.0, float(value)))


class SignalAnalyzer:
    """RMS energy of little-endian signed 16-bit PCM frames."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1) -> None:
        if sample_rate not in INGEST_SAMPLE_RATES:
            raise AudioAnalysisError(f"Unsupported sample rate: {sample_rate}")
        if channels < 1:
            raise AudioAnalysisError(f"Invalid channel count: {channels}")
        self.sample_rate = sample_rate
        self.channels = channels

    def measure(self, frame: bytes) -> float:
        """Return the frame's RMS amplitude divided by full scale.

        Empty input measures 0.0. A trailing partial sample is ignored.
        """
        usable = len(frame) - (len(frame) % 2)
        if usable <= 0:
            return 0.0
        samples = np.frombuffer(frame[:usable], dtype="<i2").astype(np.float64)
        rms = float(np.sqrt(np.mean(samples**2)))
        return clamp_volume(rms / _INT16_FULL_SCALE)

    def sample(self, frame: bytes, timestamp: float) -> VolumeSample:
        return VolumeSample(volume=self.measure(frame), timestamp=timestamp)


def build_signal_analyzer(audio_format: str, sample_rate: int) -> SignalAnalyzer | None:
    """Build the analyzer for an ingest stream.

    Returns:
        An analyzer for PCM streams, or None for compressed streams whose
        levels are reported by the client.

    Raises:
        AudioAnalysisError: the format or sample rate cannot be handled.
    """
    if audio_format not in INGEST_FORMATS:
        raise AudioAnalysisError(f"Unsupported audio format: {audio_format}")
    if audio_format != PCM_FORMAT:
        logger.debug("audio_levels.client_reported_levels", audio_format=audio_format)
        return None
    return SignalAnalyzer(sample_rate=sample_rate)


__all__ = [
    "AudioAnalysisError",
    "SignalAnalyzer",
    "VolumeSample",
    "build_signal_analyzer",
    "clamp_volume",
]

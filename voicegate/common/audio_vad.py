"""Energy-based voice activity detection.

``VoiceActivityDetector`` is a timer-debounced state machine over a stream of
``VolumeSample`` values:

    SILENT --voiced--> PENDING_START --start delay elapsed--> SPEAKING
    PENDING_START --unvoiced--> SILENT
    SPEAKING --unvoiced--> PENDING_END --end delay elapsed--> SILENT (speech end)
    PENDING_END --voiced--> SPEAKING

Utterance duration runs from the first voiced sample (the onset that opened
PENDING_START) to the first unvoiced sample that opened the final
PENDING_END, so debounce delays are not counted. An utterance still active
when ``max_speech_duration_ms`` has elapsed since its onset is force-ended at
exactly that ceiling.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from voicegate.common.audio_levels import VolumeSample
from voicegate.common.config import VADSettings
from voicegate.common.config.base import ValidationError
from voicegate.common.structured_logging import get_logger
from voicegate.common.timers import Scheduler, TimerHandle, cancel_timer

logger = get_logger(__name__)

# stt_start "vad" keys -> VADConfig fields
_WIRE_NAMES = {
    "volumeThreshold": "volume_threshold",
    "speechStartDelayMs": "speech_start_delay_ms",
    "speechEndDelayMs": "speech_end_delay_ms",
    "minSpeechDurationMs": "min_speech_duration_ms",
    "maxSpeechDurationMs": "max_speech_duration_ms",
}


@dataclass(frozen=True, slots=True)
class VADConfig:
    """Immutable detector parameters."""

    volume_threshold: float = 0.01
    speech_start_delay_ms: int = 150
    speech_end_delay_ms: int = 1000
    min_speech_duration_ms: int = 800
    max_speech_duration_ms: int = 30000

    def __post_init__(self) -> None:
        if not 0.0 <= self.volume_threshold <= 1.0:
            raise ValidationError(
                "volume_threshold", self.volume_threshold, "Must be within [0, 1]"
            )
        for name in ("speech_start_delay_ms", "speech_end_delay_ms", "min_speech_duration_ms"):
            if getattr(self, name) < 0:
                raise ValidationError(name, getattr(self, name), "Must be >= 0")
        if self.max_speech_duration_ms <= self.speech_start_delay_ms:
            raise ValidationError(
                "max_speech_duration_ms",
                self.max_speech_duration_ms,
                "Must exceed speech_start_delay_ms",
            )
        if self.max_speech_duration_ms < self.min_speech_duration_ms:
            raise ValidationError(
                "max_speech_duration_ms",
                self.max_speech_duration_ms,
                "Must be >= min_speech_duration_ms",
            )

    @classmethod
    def from_settings(cls, settings: VADSettings) -> VADConfig:
        return cls(
            volume_threshold=settings.volume_threshold,
            speech_start_delay_ms=settings.speech_start_delay_ms,
            speech_end_delay_ms=settings.speech_end_delay_ms,
            min_speech_duration_ms=settings.min_speech_duration_ms,
            max_speech_duration_ms=settings.max_speech_duration_ms,
        )

    def with_overrides(self, overrides: Mapping[str, Any]) -> VADConfig:
        """Return a new config with client-supplied camelCase overrides applied.

        Raises:
            ValidationError: unknown key or invalid value.
        """
        changes: dict[str, Any] = {}
        for wire_name, value in overrides.items():
            field_name = _WIRE_NAMES.get(wire_name)
            if field_name is None:
                raise ValidationError(wire_name, value, "Unknown VAD parameter")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(wire_name, value, "Expected a number")
            if not math.isfinite(value):
                raise ValidationError(wire_name, value, "Must be a finite number")
            changes[field_name] = float(value) if field_name == "volume_threshold" else int(value)
        return replace(self, **changes)


class VADState(Enum):
    """Detector states."""

    SILENT = "silent"
    PENDING_START = "pending_start"
    SPEAKING = "speaking"
    PENDING_END = "pending_end"


@dataclass(frozen=True, slots=True)
class SpeechStart:
    """Emitted once the start debounce has elapsed."""

    onset: float


@dataclass(frozen=True, slots=True)
class SpeechEnd:
    """Emitted when an utterance of at least the minimum duration ends."""

    onset: float
    end: float
    duration_ms: float
    forced: bool = False


SpeechStartHandler = Callable[[SpeechStart], None]
SpeechEndHandler = Callable[[SpeechEnd], None]
VolumeHandler = Callable[[VolumeSample], None]


class VoiceActivityDetector:
    """Timer-debounced speech boundary detector.

    All methods and timer callbacks must run on the same event loop; the
    detector holds no locks.
    """

    def __init__(
        self,
        config: VADConfig,
        scheduler: Scheduler,
        *,
        on_speech_start: SpeechStartHandler | None = None,
        on_speech_end: SpeechEndHandler | None = None,
        on_speech_discarded: SpeechEndHandler | None = None,
        on_volume: VolumeHandler | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self._config = config
        self._scheduler = scheduler
        self._on_speech_start = on_speech_start
        self._on_speech_end = on_speech_end
        self._on_speech_discarded = on_speech_discarded
        self._on_volume = on_volume
        self._logger = get_logger(__name__, correlation_id=correlation_id)

        self._listening = False
        self._state = VADState.SILENT
        self._onset: float | None = None
        self._silence_onset: float | None = None
        self._start_timer: TimerHandle | None = None
        self._end_timer: TimerHandle | None = None
        self._max_timer: TimerHandle | None = None

    @property
    def config(self) -> VADConfig:
        return self._config

    @property
    def state(self) -> VADState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._listening

    @property
    def is_speaking(self) -> bool:
        return self._state in (VADState.SPEAKING, VADState.PENDING_END)

    def start(self) -> None:
        if self._listening:
            return
        self._listening = True
        self._logger.debug("vad.started", config=self._config)

    def stop(self) -> None:
        """Stop listening and cancel every pending timer without emitting events."""
        if not self._listening:
            return
        self._listening = False
        self._reset()
        self._logger.debug("vad.stopped")

    def process(self, sample: VolumeSample) -> None:
        """Advance the state machine with one volume observation."""
        if not self._listening:
            return

        if self._on_volume is not None:
            self._on_volume(sample)

        voiced = sample.volume > self._config.volume_threshold
        now = sample.timestamp

        if self._state is VADState.SILENT:
            if voiced:
                self._state = VADState.PENDING_START
                self._onset = now
                self._start_timer = self._scheduler.call_later(
                    self._config.speech_start_delay_ms / 1000.0, self._on_start_timer
                )
        elif self._state is VADState.PENDING_START:
            if not voiced:
                cancel_timer(self._start_timer)
                self._start_timer = None
                self._onset = None
                self._state = VADState.SILENT
        elif self._state is VADState.SPEAKING:
            if not voiced:
                self._state = VADState.PENDING_END
                self._silence_onset = now
                self._end_timer = self._scheduler.call_later(
                    self._config.speech_end_delay_ms / 1000.0, self._on_end_timer
                )
        elif self._state is VADState.PENDING_END:
            if voiced:
                cancel_timer(self._end_timer)
                self._end_timer = None
                self._silence_onset = None
                self._state = VADState.SPEAKING

    def _on_start_timer(self) -> None:
        self._start_timer = None
        if not self._listening or self._state is not VADState.PENDING_START:
            return
        assert self._onset is not None
        self._state = VADState.SPEAKING
        elapsed = self._scheduler.now() - self._onset
        self._max_timer = self._scheduler.call_later(
            self._config.max_speech_duration_ms / 1000.0 - elapsed, self._on_max_timer
        )
        self._logger.debug("vad.speech_start", onset=self._onset)
        if self._on_speech_start is not None:
            self._on_speech_start(SpeechStart(onset=self._onset))

    def _on_end_timer(self) -> None:
        self._end_timer = None
        if not self._listening or self._state is not VADState.PENDING_END:
            return
        assert self._silence_onset is not None
        self._finish(self._silence_onset, forced=False)

    def _on_max_timer(self) -> None:
        self._max_timer = None
        if not self._listening or not self.is_speaking:
            return
        assert self._onset is not None
        self._logger.info(
            "vad.max_duration_reached",
            max_speech_duration_ms=self._config.max_speech_duration_ms,
        )
        self._finish(self._onset + self._config.max_speech_duration_ms / 1000.0, forced=True)

    def _finish(self, end: float, *, forced: bool) -> None:
        onset = self._onset
        assert onset is not None
        self._reset()

        duration_ms = (end - onset) * 1000.0
        event = SpeechEnd(onset=onset, end=end, duration_ms=duration_ms, forced=forced)
        if duration_ms < self._config.min_speech_duration_ms:
            self._logger.debug(
                "vad.speech_discarded",
                duration_ms=round(duration_ms, 1),
                min_speech_duration_ms=self._config.min_speech_duration_ms,
            )
            if self._on_speech_discarded is not None:
                self._on_speech_discarded(event)
            return

        self._logger.debug(
            "vad.speech_end", duration_ms=round(duration_ms, 1), forced=forced
        )
        if self._on_speech_end is not None:
            self._on_speech_end(event)

    def _reset(self) -> None:
        for handle in (self._start_timer, self._end_timer, self._max_timer):
            cancel_timer(handle)
        self._start_timer = None
        self._end_timer = None
        self._max_timer = None
        self._onset = None
        self._silence_onset = None
        self._state = VADState.SILENT


__all__ = [
    "SpeechEnd",
    "SpeechStart",
    "VADConfig",
    "VADState",
    "VoiceActivityDetector",
]

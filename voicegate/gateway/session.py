"""Per-connection transcription session.

A session multiplexes JSON control messages and binary audio frames from one
websocket, runs them through the signal analyzer, the speech boundary
detector and the segment recorder, and hands finished segments to the
session's transcription provider.

All state lives on one event loop: transport handlers, detector timer
callbacks and the dispatch task never run concurrently with each other.
At most one transcription is in flight. A segment that completes while one
is in flight waits in a single pending slot (later segments are merged into
it) and is dispatched as soon as the in-flight call settles.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from voicegate.common.audio_levels import (
    AudioAnalysisError,
    SignalAnalyzer,
    VolumeSample,
    build_signal_analyzer,
    clamp_volume,
)
from voicegate.common.audio_vad import SpeechEnd, SpeechStart, VADConfig, VoiceActivityDetector
from voicegate.common.config import ConfigError, GatewayConfig
from voicegate.common.structured_logging import LogSampler, get_logger
from voicegate.common.timers import LoopScheduler, Scheduler
from voicegate.gateway.messages import (
    ErrorMessage,
    MessageError,
    SaveAckMessage,
    SaveMessage,
    ServerMessage,
    SttAckMessage,
    SttResultMessage,
    SttStartMessage,
    VolumeMessage,
    WelcomeMessage,
    parse_client_message,
)
from voicegate.gateway.providers import (
    ProviderConfigurationError,
    ProviderDescriptor,
    ProviderError,
    ProviderRegistry,
    TranscriptionProvider,
    transcribe,
)
from voicegate.gateway.recorder import RollingBuffer, SegmentRecorder, SpeechSegment
from voicegate.gateway.storage import RecordingStore
from voicegate.gateway.wake import WakePhraseMatcher

SendJson = Callable[[dict[str, Any]], Awaitable[None]]


class SessionState(Enum):
    IDLE = "idle"
    MODE_PENDING = "mode_pending"
    LISTENING = "listening"
    DISPATCHING = "dispatching"


@dataclass(frozen=True, slots=True)
class SessionDefaults:
    """Server-side defaults a client's ``stt_start`` can override."""

    vad: VADConfig = VADConfig()
    audio_format: str = "pcm_s16le"
    sample_rate: int = 16000
    pre_roll_ms: int = 500
    rolling_buffer_max_bytes: int = 10 * 1024 * 1024
    default_model: str = "openai:whisper-1"
    request_timeout_seconds: float = 30.0
    save_on_close: bool = True

    @classmethod
    def from_config(cls, config: GatewayConfig) -> SessionDefaults:
        return cls(
            vad=VADConfig.from_settings(config.vad),
            audio_format=config.audio.audio_format,
            sample_rate=config.audio.sample_rate,
            pre_roll_ms=config.audio.pre_roll_ms,
            rolling_buffer_max_bytes=config.audio.rolling_buffer_max_bytes,
            default_model=config.providers.default_model,
            request_timeout_seconds=config.providers.request_timeout_seconds,
            save_on_close=config.storage.save_on_close,
        )


@dataclass(slots=True)
class _Pipeline:
    """Everything an ``stt_start`` configures."""

    provider: TranscriptionProvider
    descriptor: ProviderDescriptor
    analyzer: SignalAnalyzer | None
    vad: VoiceActivityDetector
    recorder: SegmentRecorder
    wake_matcher: WakePhraseMatcher
    audio_format: str
    sample_rate: int


class TranscriptionSession:
    """State machine for one client connection."""

    def __init__(
        self,
        send_json: SendJson,
        *,
        registry: ProviderRegistry,
        store: RecordingStore,
        defaults: SessionDefaults | None = None,
        scheduler: Scheduler | None = None,
        session_id: str | None = None,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self._send_json = send_json
        self._registry = registry
        self._store = store
        self._defaults = defaults or SessionDefaults()
        self._scheduler = scheduler or LoopScheduler()
        self._wall_clock = wall_clock
        self._logger = get_logger(__name__, correlation_id=self.session_id)
        self._sampler = LogSampler(100)

        self._state = SessionState.IDLE
        self._pipeline: _Pipeline | None = None
        self._rolling = RollingBuffer(self._defaults.rolling_buffer_max_bytes)
        self._rolling_format = self._defaults.audio_format
        self._rolling_sample_rate = self._defaults.sample_rate
        self._send_lock = asyncio.Lock()
        self._dispatch_task: asyncio.Task[None] | None = None
        self._pending: SpeechSegment | None = None
        self._closed = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return self._dispatch_task is not None

    @property
    def descriptor(self) -> ProviderDescriptor | None:
        return self._pipeline.descriptor if self._pipeline else None

    @property
    def vad(self) -> VoiceActivityDetector | None:
        return self._pipeline.vad if self._pipeline else None

    @property
    def rolling_buffer(self) -> RollingBuffer:
        return self._rolling

    async def open(self) -> None:
        self._logger.info("session.opened")
        await self._send(
            WelcomeMessage(
                message="Connected to voicegate transcription gateway",
                session_id=self.session_id,
            )
        )

    async def handle_text(self, raw: str) -> None:
        """Route one JSON control message."""
        try:
            message = parse_client_message(raw)
        except MessageError as exc:
            self._logger.warning("session.invalid_message", error=str(exc))
            await self._send(ErrorMessage(message=str(exc)))
            return

        if isinstance(message, SttStartMessage):
            await self._start_mode(message)
        elif isinstance(message, SaveMessage):
            await self._save()
        elif isinstance(message, VolumeMessage):
            self._handle_client_volume(message)

    async def handle_binary(self, frame: bytes) -> None:
        """Consume one inbound audio chunk."""
        pipeline = self._pipeline
        if pipeline is None or self._state not in (
            SessionState.LISTENING,
            SessionState.DISPATCHING,
        ):
            if self._sampler.hit("session.frame_dropped"):
                self._logger.debug(
                    "session.frame_dropped",
                    state=self._state.value,
                    bytes=len(frame),
                    dropped_total=self._sampler.count("session.frame_dropped"),
                )
            return

        now = self._scheduler.now()
        if pipeline.recorder.expects_header:
            pipeline.recorder.append(frame, now)
            self._rolling.header = pipeline.recorder.header
            return
        self._rolling.append(frame)
        pipeline.recorder.append(frame, now)
        if pipeline.analyzer is not None:
            pipeline.vad.process(pipeline.analyzer.sample(frame, now))

    async def close(self) -> None:
        """Release timers and provider handles, then flush saved audio."""
        if self._closed:
            return
        self._closed = True

        task = self._dispatch_task
        self._dispatch_task = None
        self._pending = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                self._logger.debug("session.dispatch_cancelled")

        pipeline = self._pipeline
        self._pipeline = None
        if pipeline is not None:
            await self._teardown(pipeline)
        self._state = SessionState.IDLE

        if self._defaults.save_on_close and self._rolling.total_bytes:
            audio = self._rolling.drain()
            try:
                await self._store.save(
                    audio,
                    client_id=self.session_id,
                    audio_format=self._rolling_format,
                    sample_rate=self._rolling_sample_rate,
                )
            except OSError as exc:
                self._logger.error("session.flush_failed", error=str(exc), bytes=len(audio))
        self._logger.info("session.closed")

    async def _start_mode(self, message: SttStartMessage) -> None:
        if self._state is SessionState.DISPATCHING:
            await self._send(
                ErrorMessage(
                    message="Cannot change STT mode while a transcription is in progress"
                )
            )
            return

        previous_state = self._state
        self._state = SessionState.MODE_PENDING
        try:
            pipeline = self._build_pipeline(message)
        except (ProviderConfigurationError, AudioAnalysisError, ConfigError) as exc:
            self._state = previous_state
            self._logger.warning(
                "session.stt_mode_rejected",
                stt_model=message.stt_model,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            await self._send(ErrorMessage(message=f"STT provider error: {exc}"))
            return

        old = self._pipeline
        if old is not None:
            await self._teardown(old)
        if (pipeline.audio_format, pipeline.sample_rate) != (
            self._rolling_format,
            self._rolling_sample_rate,
        ):
            self._rolling.reset()
        self._rolling_format = pipeline.audio_format
        self._rolling_sample_rate = pipeline.sample_rate
        # same stream, new pipeline: keep decoding against the header already seen
        pipeline.recorder.header = self._rolling.header

        self._pipeline = pipeline
        pipeline.vad.start()
        self._state = SessionState.LISTENING
        self._logger.info(
            "session.stt_mode_started",
            provider=pipeline.descriptor.provider_name,
            model=pipeline.descriptor.model_name,
            audio_format=pipeline.audio_format,
            sample_rate=pipeline.sample_rate,
            client_levels=pipeline.analyzer is None,
        )
        await self._send(
            SttAckMessage(
                stt_model=message.stt_model or self._defaults.default_model,
                resolved_model=pipeline.descriptor.config_string,
                message=f"STT mode started with {pipeline.provider.display_name}",
                audio_format=pipeline.audio_format,
                sample_rate=pipeline.sample_rate,
            )
        )

    def _build_pipeline(self, message: SttStartMessage) -> _Pipeline:
        audio_format = message.audio_format or self._defaults.audio_format
        sample_rate = message.sample_rate or self._defaults.sample_rate
        analyzer = build_signal_analyzer(audio_format, sample_rate)
        vad_config = self._defaults.vad.with_overrides(message.vad or {})

        provider, descriptor = self._registry.resolve(
            message.stt_model or self._defaults.default_model
        )
        vad = VoiceActivityDetector(
            vad_config,
            self._scheduler,
            on_speech_start=self._on_speech_start,
            on_speech_end=self._on_speech_end,
            on_speech_discarded=self._on_speech_discarded,
            correlation_id=self.session_id,
        )
        recorder = SegmentRecorder(
            audio_format,
            sample_rate,
            pre_roll_seconds=self._defaults.pre_roll_ms / 1000.0,
        )
        return _Pipeline(
            provider=provider,
            descriptor=descriptor,
            analyzer=analyzer,
            vad=vad,
            recorder=recorder,
            wake_matcher=WakePhraseMatcher(message.wake_words),
            audio_format=audio_format,
            sample_rate=sample_rate,
        )

    async def _teardown(self, pipeline: _Pipeline) -> None:
        pipeline.vad.stop()
        pipeline.recorder.reset()
        await pipeline.provider.aclose()

    def _handle_client_volume(self, message: VolumeMessage) -> None:
        pipeline = self._pipeline
        if pipeline is None or self._state not in (
            SessionState.LISTENING,
            SessionState.DISPATCHING,
        ):
            return
        if pipeline.analyzer is not None:
            # server-side levels win for PCM streams
            return
        pipeline.vad.process(
            VolumeSample(volume=clamp_volume(message.volume), timestamp=self._scheduler.now())
        )

    def _on_speech_start(self, event: SpeechStart) -> None:
        if self._pipeline is not None:
            self._pipeline.recorder.start(event.onset)

    def _on_speech_discarded(self, _event: SpeechEnd) -> None:
        if self._pipeline is not None:
            self._pipeline.recorder.discard()

    def _on_speech_end(self, event: SpeechEnd) -> None:
        pipeline = self._pipeline
        if pipeline is None or self._closed:
            return
        start_time = self._wall_clock() - (self._scheduler.now() - event.onset)
        segment = pipeline.recorder.finalize(
            duration_ms=event.duration_ms, start_time=start_time
        )
        if self._dispatch_task is not None:
            self._pending = segment if self._pending is None else self._pending.merged_with(segment)
            self._logger.info(
                "session.segment_queued",
                byte_length=segment.byte_length,
                pending_bytes=self._pending.byte_length,
            )
            return
        self._dispatch(segment)

    def _dispatch(self, segment: SpeechSegment) -> None:
        assert self._pipeline is not None
        self._state = SessionState.DISPATCHING
        self._dispatch_task = asyncio.create_task(
            self._run_dispatch(self._pipeline, segment),
            name=f"stt-dispatch-{self.session_id}",
        )

    async def _run_dispatch(self, pipeline: _Pipeline, segment: SpeechSegment) -> None:
        replies: list[ServerMessage] = []

        def on_result(text: str) -> None:
            replies.append(
                SttResultMessage(
                    text=text,
                    segment_size=segment.byte_length,
                    timestamp=int(segment.start_time * 1000),
                    duration_ms=round(segment.duration_ms),
                    wake_word=pipeline.wake_matcher.first_match(text),
                )
            )

        def on_error(error: ProviderError) -> None:
            replies.append(
                ErrorMessage(message=f"STT error: {error}", segment_size=segment.byte_length)
            )

        self._logger.info(
            "session.dispatch_started",
            provider=pipeline.descriptor.provider_name,
            byte_length=segment.byte_length,
            duration_ms=round(segment.duration_ms, 1),
        )
        started = time.monotonic()
        await transcribe(
            pipeline.provider,
            segment,
            on_result,
            on_error,
            pipeline.descriptor.transcribe_options(),
            timeout_seconds=self._defaults.request_timeout_seconds,
            correlation_id=self.session_id,
        )
        self._logger.info(
            "session.dispatch_settled",
            outcome=replies[0].type if replies else "none",
            latency_ms=int((time.monotonic() - started) * 1000),
        )
        try:
            for reply in replies:
                await self._send(reply)
        except Exception as exc:
            # the receive loop observes the disconnect and closes the session
            self._logger.warning("session.reply_failed", error=str(exc))
        finally:
            self._settle()

    def _settle(self) -> None:
        self._dispatch_task = None
        if self._closed or self._pipeline is None:
            return
        pending = self._pending
        self._pending = None
        if pending is not None:
            self._dispatch(pending)
        else:
            self._state = SessionState.LISTENING

    async def _save(self) -> None:
        audio = self._rolling.drain()
        try:
            saved = await self._store.save(
                audio,
                client_id=self.session_id,
                audio_format=self._rolling_format,
                sample_rate=self._rolling_sample_rate,
            )
        except OSError as exc:
            self._logger.error("session.save_failed", error=str(exc), bytes=len(audio))
            await self._send(ErrorMessage(message=f"Failed to save audio: {exc}"))
            return
        await self._send(
            SaveAckMessage(
                message="Audio saved",
                filename=saved.filename,
                bytes_saved=saved.byte_length,
            )
        )

    async def _send(self, message: ServerMessage) -> None:
        if self._closed:
            self._logger.debug("session.reply_discarded", type=message.type)
            return
        async with self._send_lock:
            await self._send_json(message.to_wire())


__all__ = ["SendJson", "SessionDefaults", "SessionState", "TranscriptionSession"]

"""Configuration groups for the transcription gateway."""

from __future__ import annotations

from typing import Any

from .base import BaseConfig, FieldDefinition, LoggingConfig, ServiceConfig

PCM_FORMAT = "pcm_s16le"
INGEST_FORMATS = [PCM_FORMAT, "webm", "ogg"]
INGEST_SAMPLE_RATES = [8000, 16000, 22050, 24000, 44100, 48000]


class VADSettings(BaseConfig):
    """Default speech boundary detector parameters."""

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            FieldDefinition(
                name="volume_threshold",
                field_type=float,
                default=0.01,
                description="Normalized volume (0-1) above which a frame counts as voiced",
                env_var="VAD_VOLUME_THRESHOLD",
                min_value=0.0,
                max_value=1.0,
            ),
            FieldDefinition(
                name="speech_start_delay_ms",
                field_type=int,
                default=150,
                description="Voiced time required before speech start is emitted",
                env_var="VAD_SPEECH_START_DELAY_MS",
                min_value=0,
                max_value=10000,
            ),
            FieldDefinition(
                name="speech_end_delay_ms",
                field_type=int,
                default=1000,
                description="Silence required before speech end is emitted",
                env_var="VAD_SPEECH_END_DELAY_MS",
                min_value=0,
                max_value=30000,
            ),
            FieldDefinition(
                name="min_speech_duration_ms",
                field_type=int,
                default=800,
                description="Utterances shorter than this are discarded",
                env_var="VAD_MIN_SPEECH_DURATION_MS",
                min_value=0,
                max_value=60000,
            ),
            FieldDefinition(
                name="max_speech_duration_ms",
                field_type=int,
                default=30000,
                description="Utterances are force-ended at this length",
                env_var="VAD_MAX_SPEECH_DURATION_MS",
                min_value=100,
                max_value=600000,
            ),
        ]


class AudioIngestSettings(BaseConfig):
    """Defaults for the binary audio stream accepted from clients."""

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            FieldDefinition(
                name="audio_format",
                field_type=str,
                default=PCM_FORMAT,
                description="Encoding of inbound binary frames",
                env_var="AUDIO_FORMAT",
                choices=INGEST_FORMATS,
            ),
            FieldDefinition(
                name="sample_rate",
                field_type=int,
                default=16000,
                description="Sample rate of inbound PCM frames in Hz",
                env_var="AUDIO_SAMPLE_RATE",
                choices=INGEST_SAMPLE_RATES,
            ),
            FieldDefinition(
                name="rolling_buffer_max_bytes",
                field_type=int,
                default=10 * 1024 * 1024,
                description="Cap for the per-session debug buffer; oldest frames are dropped",
                env_var="AUDIO_ROLLING_BUFFER_MAX_BYTES",
                min_value=0,
            ),
            FieldDefinition(
                name="pre_roll_ms",
                field_type=int,
                default=500,
                description="Audio kept from before the debounced speech start",
                env_var="AUDIO_PRE_ROLL_MS",
                min_value=0,
                max_value=5000,
            ),
        ]


class ProviderSettings(BaseConfig):
    """Credentials and request options for transcription backends."""

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            FieldDefinition(
                name="openai_api_key",
                field_type=str,
                default="",
                description="OpenAI API key",
                env_var="OPENAI_API_KEY",
            ),
            FieldDefinition(
                name="openai_base_url",
                field_type=str,
                default="https://api.openai.com/v1",
                description="OpenAI API base URL",
                env_var="OPENAI_BASE_URL",
                pattern=r"^https?://",
            ),
            FieldDefinition(
                name="gemini_api_key",
                field_type=str,
                default="",
                description="Google Gemini API key",
                env_var="GEMINI_API_KEY",
            ),
            FieldDefinition(
                name="gemini_base_url",
                field_type=str,
                default="https://generativelanguage.googleapis.com/v1beta",
                description="Gemini API base URL",
                env_var="GEMINI_BASE_URL",
                pattern=r"^https?://",
            ),
            FieldDefinition(
                name="whisper_service_url",
                field_type=str,
                default="",
                description="Base URL of a self-hosted Whisper transcription service",
                env_var="WHISPER_SERVICE_URL",
            ),
            FieldDefinition(
                name="language",
                field_type=str,
                default="",
                description="Language hint passed to providers; empty means auto-detect",
                env_var="STT_LANGUAGE",
            ),
            FieldDefinition(
                name="request_timeout_seconds",
                field_type=float,
                default=30.0,
                description="Upper bound for one remote transcription call",
                env_var="STT_REQUEST_TIMEOUT_SECONDS",
                min_value=1.0,
                max_value=300.0,
            ),
            FieldDefinition(
                name="default_model",
                field_type=str,
                default="openai:whisper-1",
                description="Provider configuration used when stt_start names none",
                env_var="STT_DEFAULT_MODEL",
            ),
        ]


class StorageSettings(BaseConfig):
    """Durable sink for saved session audio."""

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            FieldDefinition(
                name="recordings_dir",
                field_type=str,
                default="recordings",
                description="Directory that receives saved session audio",
                env_var="RECORDINGS_DIR",
            ),
            FieldDefinition(
                name="save_on_close",
                field_type=bool,
                default=True,
                description="Flush buffered session audio when a connection closes",
                env_var="RECORDINGS_SAVE_ON_CLOSE",
            ),
        ]


class GatewayConfig:
    """Transcription gateway configuration."""

    def __init__(self, **kwargs: Any) -> None:
        self.logging = LoggingConfig(**kwargs.get("logging", {}))
        self.service = ServiceConfig(**kwargs.get("service", {}))
        self.vad = VADSettings(**kwargs.get("vad", {}))
        self.audio = AudioIngestSettings(**kwargs.get("audio", {}))
        self.providers = ProviderSettings(**kwargs.get("providers", {}))
        self.storage = StorageSettings(**kwargs.get("storage", {}))

    def to_dict(self) -> dict[str, Any]:
        return {
            "logging": self.logging.to_dict(),
            "service": self.service.to_dict(),
            "vad": self.vad.to_dict(),
            "audio": self.audio.to_dict(),
            # keys stay out of dumps
            "providers": {
                key: value
                for key, value in self.providers.to_dict().items()
                if not key.endswith("_api_key")
            },
            "storage": self.storage.to_dict(),
        }

"""Websocket control messages.

Inbound text frames are JSON objects discriminated by ``type``; outbound
models serialize with the camelCase keys clients expect.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError


class MessageError(Exception):
    """An inbound control message could not be understood."""


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


class SttStartMessage(BaseModel):
    """Enter transcription mode."""

    type: Literal["stt_start"] = "stt_start"
    stt_model: str | None = Field(
        None, description="Provider configuration string, e.g. 'openai:whisper-1'"
    )
    audio_format: str | None = Field(None, description="Encoding of binary frames")
    sample_rate: int | None = Field(None, description="PCM sample rate in Hz")
    vad: dict[str, Any] | None = Field(None, description="camelCase VAD overrides")
    wake_words: list[str] = Field(
        default_factory=list, description="Phrases looked for in transcripts"
    )


class SaveMessage(BaseModel):
    """Persist the rolling audio buffer."""

    type: Literal["save"] = "save"


class VolumeMessage(BaseModel):
    """Client-measured level for streams the server cannot analyse."""

    type: Literal["volume"] = "volume"
    volume: float = Field(..., description="Normalized level, clamped into [0, 1]")


ClientMessage = SttStartMessage | SaveMessage | VolumeMessage

_INBOUND: dict[str, type[BaseModel]] = {
    "stt_start": SttStartMessage,
    "save": SaveMessage,
    "volume": VolumeMessage,
}


def parse_client_message(raw: str) -> ClientMessage:
    """Decode one text frame.

    Raises:
        MessageError: not JSON, not an object, unknown ``type`` or bad fields.
    """
    try:
        data = json.loads(raw, parse_constant=_reject_constant)
    except (TypeError, ValueError) as exc:
        raise MessageError("Invalid JSON message") from exc
    if not isinstance(data, dict):
        raise MessageError("Message must be a JSON object")

    message_type = data.get("type")
    model = _INBOUND.get(message_type) if isinstance(message_type, str) else None
    if model is None:
        raise MessageError(f"Unknown message type: {message_type!r}")
    try:
        return model.model_validate(data)  # type: ignore[return-value]
    except PydanticValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise MessageError(f"Invalid {message_type} message: {details}") from exc


class ServerMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class WelcomeMessage(ServerMessage):
    type: Literal["welcome"] = "welcome"
    message: str
    session_id: str


class SttAckMessage(ServerMessage):
    type: Literal["stt_ack"] = "stt_ack"
    stt_model: str
    resolved_model: str
    mode: Literal["speech_segment_based"] = "speech_segment_based"
    message: str
    audio_format: str
    sample_rate: int


class SttResultMessage(ServerMessage):
    type: Literal["stt_result"] = "stt_result"
    text: str
    segment_size: int = Field(..., alias="segmentSize")
    timestamp: int = Field(..., description="Epoch milliseconds of the speech onset")
    duration_ms: int = Field(..., alias="durationMs")
    wake_word: str | None = None


class ErrorMessage(ServerMessage):
    type: Literal["error"] = "error"
    message: str
    segment_size: int | None = Field(None, alias="segmentSize")


class SaveAckMessage(ServerMessage):
    type: Literal["save_ack"] = "save_ack"
    message: str
    filename: str | None = None
    bytes_saved: int = Field(0, alias="bytes")


__all__ = [
    "ClientMessage",
    "ErrorMessage",
    "MessageError",
    "SaveAckMessage",
    "SaveMessage",
    "ServerMessage",
    "SttAckMessage",
    "SttResultMessage",
    "SttStartMessage",
    "VolumeMessage",
    "WelcomeMessage",
    "parse_client_message",
]

"""Field-definition configuration.

Each settings group lists its fields as ``FieldDefinition`` entries. A field's
value comes from its environment variable when set, otherwise from the
constructor keyword, otherwise from its default, and is then coerced and
checked against the field's constraints.
"""

from __future__ import annotations

import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

_TRUE = frozenset({"1", "true", "yes", "on"})


class ConfigError(Exception):
    """Base exception for configuration-related errors."""


class ValidationError(ConfigError):
    """A configuration value broke one of its field's constraints."""

    def __init__(self, field_name: str, value: Any, message: str) -> None:
        self.field = field_name
        self.value = value
        self.message = message
        super().__init__(f"Validation failed for field '{field_name}': {message}")


@dataclass(frozen=True)
class FieldDefinition:
    """One named, typed configuration value."""

    name: str
    field_type: type[Any]
    default: Any = None
    description: str = ""
    env_var: str | None = None
    choices: list[Any] | None = None
    min_value: int | float | None = None
    max_value: int | float | None = None
    pattern: str | None = None

    def parse_env(self, raw: str) -> Any:
        """Convert an environment string to the field's type."""
        if self.field_type is bool:
            return raw.strip().lower() in _TRUE
        if self.field_type in (int, float):
            try:
                return self.field_type(raw.strip())
            except ValueError as exc:
                raise ValidationError(
                    self.name,
                    raw,
                    f"Cannot parse {self.env_var} as {self.field_type.__name__}",
                ) from exc
        return raw

    def check(self, value: Any) -> Any:
        """Return ``value`` normalized for this field, or raise ValidationError."""
        if self.field_type is float and isinstance(value, int) and not isinstance(value, bool):
            value = float(value)
        if not isinstance(value, self.field_type) or (
            self.field_type is int and isinstance(value, bool)
        ):
            raise ValidationError(self.name, value, f"Expected {self.field_type.__name__}")

        if self.choices is not None:
            value = self._match_choice(value)
        if self.min_value is not None and value < self.min_value:
            raise ValidationError(self.name, value, f"Must be >= {self.min_value}")
        if self.max_value is not None and value > self.max_value:
            raise ValidationError(self.name, value, f"Must be <= {self.max_value}")
        if self.pattern is not None and value and not re.match(self.pattern, value):
            raise ValidationError(self.name, value, f"Must match pattern {self.pattern}")
        return value

    def _match_choice(self, value: Any) -> Any:
        assert self.choices is not None
        for choice in self.choices:
            if choice == value:
                return choice
            # LOG_LEVEL=debug and friends
            if isinstance(choice, str) and isinstance(value, str) and choice.lower() == value.lower():
                return choice
        raise ValidationError(self.name, value, f"Must be one of {self.choices}")


class BaseConfig(ABC):
    """A validated group of settings exposed as attributes."""

    def __init__(self, **kwargs: Any) -> None:
        fields = self.get_field_definitions()
        unknown = sorted(set(kwargs) - {field.name for field in fields})
        if unknown:
            raise ConfigError(f"Unknown {type(self).__name__} fields: {', '.join(unknown)}")

        self._values: dict[str, Any] = {}
        for field in fields:
            raw = os.getenv(field.env_var) if field.env_var else None
            if raw is not None:
                value = field.parse_env(raw)
            else:
                value = kwargs.get(field.name, field.default)
            self._values[field.name] = field.check(value)

    @classmethod
    @abstractmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        """Fields of this settings group."""

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._values[name]
        except KeyError:
            raise AttributeError(f"Configuration field '{name}' not found") from None

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)


class LoggingConfig(BaseConfig):
    """Logging configuration."""

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            FieldDefinition(
                name="level",
                field_type=str,
                default="INFO",
                description="Log level",
                env_var="LOG_LEVEL",
                choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            ),
            FieldDefinition(
                name="json_logs",
                field_type=bool,
                default=True,
                description="JSON lines instead of console output",
                env_var="LOG_JSON",
            ),
            FieldDefinition(
                name="service_name",
                field_type=str,
                default="voicegate",
                description="Stamped as 'service' on every event",
                env_var="SERVICE_NAME",
            ),
        ]


class ServiceConfig(BaseConfig):
    """Network binding for the HTTP/websocket server."""

    @classmethod
    def get_field_definitions(cls) -> list[FieldDefinition]:
        return [
            FieldDefinition(
                name="host",
                field_type=str,
                default="0.0.0.0",
                description="Interface uvicorn binds to",
                env_var="SERVICE_HOST",
            ),
            FieldDefinition(
                name="port",
                field_type=int,
                default=8000,
                description="Port uvicorn listens on",
                env_var="SERVICE_PORT",
                min_value=1024,
                max_value=65535,
            ),
        ]

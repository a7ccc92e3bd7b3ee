"""Wake phrase matching on transcribed text.

This is a plain text filter over provider output, not acoustic detection.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

_NON_WORD = re.compile(r"[^\w\s]+")
_SPACES = re.compile(r"\s+")


def _normalize(text: str) -> str:
    return _SPACES.sub(" ", _NON_WORD.sub(" ", text.casefold())).strip()


@dataclass(frozen=True, slots=True)
class WakeResult:
    phrase: str
    transcript: str


class WakePhraseMatcher:
    """Case- and punctuation-insensitive substring matcher."""

    def __init__(self, phrases: Iterable[str]) -> None:
        self._phrases = [
            (phrase.strip(), _normalize(phrase)) for phrase in phrases if _normalize(phrase)
        ]

    def __bool__(self) -> bool:
        return bool(self._phrases)

    @property
    def phrases(self) -> list[str]:
        return [original for original, _ in self._phrases]

    def detect(self, transcript: str | None) -> WakeResult | None:
        if not transcript or not self._phrases:
            return None
        normalized = _normalize(transcript)
        for original, needle in self._phrases:
            if needle in normalized:
                return WakeResult(phrase=original, transcript=transcript)
        return None

    def first_match(self, transcript: str | None) -> str | None:
        result = self.detect(transcript)
        return result.phrase if result else None


__all__ = ["WakePhraseMatcher", "WakeResult"]

"""Shared helpers for voicegate tests."""

from .audio import pcm_frame, silence_frame, tone_frame
from .fakes import FakeProvider, FakeStore, Outbox, until
from .scheduling import ManualScheduler

__all__ = [
    "FakeProvider",
    "FakeStore",
    "ManualScheduler",
    "Outbox",
    "pcm_frame",
    "silence_frame",
    "tone_frame",
    "until",
]

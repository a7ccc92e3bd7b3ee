"""Fixtures for common infrastructure tests."""

from __future__ import annotations

import pytest

from voicegate.common.audio_vad import VADConfig
from voicegate.tests.utils import ManualScheduler


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def fast_vad_config() -> VADConfig:
    """Short delays so scenarios fit in a handful of 100 ms samples."""
    return VADConfig(
        volume_threshold=0.1,
        speech_start_delay_ms=150,
        speech_end_delay_ms=300,
        min_speech_duration_ms=300,
        max_speech_duration_ms=2000,
    )

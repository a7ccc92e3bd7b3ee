"""Fixtures for gateway tests."""

from __future__ import annotations

import pytest

from voicegate.common.audio_vad import VADConfig
from voicegate.gateway.providers import ProviderCredentials, ProviderRegistry
from voicegate.gateway.session import SessionDefaults, TranscriptionSession
from voicegate.tests.utils import FakeProvider, FakeStore, ManualScheduler, Outbox


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def registry(provider: FakeProvider) -> ProviderRegistry:
    registry = ProviderRegistry(ProviderCredentials())
    registry.register("fake", lambda _creds: provider)
    registry.register("offline", lambda _creds: FakeProvider("offline", available=False))
    return registry


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def outbox() -> Outbox:
    return Outbox()


@pytest.fixture
def session_defaults() -> SessionDefaults:
    return SessionDefaults(
        vad=VADConfig(
            volume_threshold=0.1,
            speech_start_delay_ms=150,
            speech_end_delay_ms=300,
            min_speech_duration_ms=300,
            max_speech_duration_ms=5000,
        ),
        pre_roll_ms=500,
        default_model="fake:fake-default",
    )


@pytest.fixture
def session(outbox, registry, store, session_defaults, scheduler) -> TranscriptionSession:
    return TranscriptionSession(
        outbox,
        registry=registry,
        store=store,
        defaults=session_defaults,
        scheduler=scheduler,
        session_id="sess-1",
        wall_clock=lambda: 1000.0,
    )

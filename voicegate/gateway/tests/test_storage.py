"""Tests for the local recording sink."""

from __future__ import annotations

import re
import wave

import pytest

from voicegate.gateway.storage import LocalRecordingStore
from voicegate.tests.utils import pcm_frame


@pytest.mark.unit
class TestLocalRecordingStore:
    async def test_pcm_saved_as_wav(self, tmp_path):
        store = LocalRecordingStore(tmp_path / "recordings")
        audio = pcm_frame(0.1, samples=800)

        saved = await store.save(audio, client_id="sess-1", audio_format="pcm_s16le", sample_rate=16000)

        assert re.fullmatch(r"audio_sess-1_\d+\.wav", saved.filename)
        with wave.open(saved.path, "rb") as wav_file:
            assert wav_file.getframerate() == 16000
            assert wav_file.readframes(800) == audio

    async def test_compressed_saved_verbatim(self, tmp_path):
        store = LocalRecordingStore(tmp_path)

        saved = await store.save(b"webm-bytes", client_id="c", audio_format="webm", sample_rate=48000)

        assert saved.filename.endswith(".webm")
        assert (tmp_path / saved.filename).read_bytes() == b"webm-bytes"
        assert saved.byte_length == len(b"webm-bytes")

    async def test_unwritable_directory_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        store = LocalRecordingStore(blocker / "sub")
        with pytest.raises(OSError):
            await store.save(b"x", client_id="c", audio_format="webm", sample_rate=48000)

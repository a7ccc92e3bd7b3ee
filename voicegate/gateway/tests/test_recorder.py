"""Tests for segment recording and the rolling buffer."""

from __future__ import annotations

import io
import wave

import pytest

from voicegate.gateway.recorder import RollingBuffer, SegmentRecorder, SpeechSegment, pcm_to_wav
from voicegate.tests.utils import pcm_frame


@pytest.mark.unit
class TestSegmentRecorder:
    def test_finalize_concatenates_in_order(self):
        recorder = SegmentRecorder("pcm_s16le", 16000, pre_roll_seconds=0.0)
        recorder.start(onset=1.0)
        for index, frame in enumerate((b"aa", b"bb", b"cc")):
            recorder.append(frame, 1.0 + index * 0.1)

        segment = recorder.finalize(duration_ms=300.0, start_time=1234.5)

        assert segment.frames == (b"aa", b"bb", b"cc")
        assert segment.byte_length == 6
        assert segment.duration_ms == 300.0
        assert segment.start_time == 1234.5
        assert not recorder.is_recording

    def test_each_start_begins_fresh(self):
        recorder = SegmentRecorder("webm", 48000, pre_roll_seconds=0.0, header=b"EBML")
        recorder.start(onset=0.0)
        recorder.append(b"first", 0.0)
        recorder.finalize(duration_ms=100.0, start_time=0.0)

        recorder.start(onset=1.0)
        recorder.append(b"second", 1.0)
        segment = recorder.finalize(duration_ms=100.0, start_time=1.0)

        assert segment.frames == (b"second",)

    def test_pre_roll_since_onset_is_kept(self):
        recorder = SegmentRecorder("webm", 48000, pre_roll_seconds=0.5, header=b"EBML")
        recorder.append(b"old", 0.0)
        recorder.append(b"onset", 0.4)
        recorder.append(b"debounce", 0.5)

        recorder.start(onset=0.4)
        recorder.append(b"speech", 0.6)

        segment = recorder.finalize(duration_ms=200.0, start_time=0.0)
        assert segment.frames == (b"onset", b"debounce", b"speech")

    def test_pre_roll_window_is_bounded(self):
        recorder = SegmentRecorder("webm", 48000, pre_roll_seconds=2.5, header=b"EBML")
        for index in range(10):
            recorder.append(bytes([index]), float(index))
        recorder.start(onset=0.0)
        segment = recorder.finalize(duration_ms=0.0, start_time=0.0)
        assert segment.frames == (b"\x07", b"\x08", b"\x09")

    def test_finalize_without_start_is_empty(self):
        recorder = SegmentRecorder("pcm_s16le", 16000)
        segment = recorder.finalize(duration_ms=900.0, start_time=0.0)
        assert segment.is_empty

    def test_discard_drops_frames(self):
        recorder = SegmentRecorder("webm", 48000, pre_roll_seconds=0.0, header=b"EBML")
        recorder.start(onset=0.0)
        recorder.append(b"blip", 0.0)
        recorder.discard()
        assert not recorder.is_recording
        assert recorder.buffered_bytes == 0

    def test_first_compressed_chunk_becomes_header(self):
        recorder = SegmentRecorder("ogg", 48000, pre_roll_seconds=0.0)
        assert recorder.expects_header
        recorder.append(b"OggS-head", 0.0)
        assert recorder.header == b"OggS-head"
        assert not recorder.expects_header

        recorder.start(onset=0.1)
        recorder.append(b"page", 0.1)
        segment = recorder.finalize(duration_ms=100.0, start_time=0.0)

        assert segment.frames == (b"page",)
        assert segment.header == b"OggS-head"
        assert segment.encode() == b"OggS-headpage"

    def test_header_outlives_pre_roll_window(self):
        recorder = SegmentRecorder("webm", 48000, pre_roll_seconds=0.5)
        recorder.append(b"EBML", 0.0)
        for index in range(1, 10):
            recorder.append(b"quiet", index * 0.25)

        recorder.start(onset=2.5)
        recorder.append(b"speech", 2.5)
        recorder.finalize(duration_ms=250.0, start_time=0.0)
        recorder.reset()
        recorder.start(onset=3.0)
        recorder.append(b"again", 3.0)
        segment = recorder.finalize(duration_ms=250.0, start_time=0.0)

        assert segment.encode() == b"EBMLagain"

    def test_pcm_has_no_header(self):
        recorder = SegmentRecorder("pcm_s16le", 16000, pre_roll_seconds=0.0)
        assert not recorder.expects_header
        recorder.start(onset=0.0)
        recorder.append(b"\x00\x01", 0.0)
        segment = recorder.finalize(duration_ms=0.1, start_time=0.0)
        assert segment.header == b""
        assert segment.frames == (b"\x00\x01",)


@pytest.mark.unit
class TestSpeechSegment:
    def test_pcm_encodes_as_wav(self):
        frame = pcm_frame(0.25, samples=160)
        segment = SpeechSegment(
            frames=(frame, frame),
            audio_format="pcm_s16le",
            sample_rate=22050,
            start_time=0.0,
            duration_ms=14.5,
        )

        encoded = segment.encode()

        assert segment.container_format == "wav"
        with wave.open(io.BytesIO(encoded), "rb") as wav_file:
            assert wav_file.getframerate() == 22050
            assert wav_file.getnchannels() == 1
            assert wav_file.getnframes() == 320
            assert wav_file.readframes(320) == frame + frame

    def test_compressed_encodes_as_concatenation(self):
        segment = SpeechSegment(
            frames=(b"\x1aE", b"rest"),
            audio_format="ogg",
            sample_rate=48000,
            start_time=0.0,
            duration_ms=1.0,
        )
        assert segment.encode() == b"\x1aErest"
        assert segment.container_format == "ogg"

    def test_merge_keeps_first_start(self):
        first = SpeechSegment((b"a",), "webm", 48000, start_time=10.0, duration_ms=500.0)
        second = SpeechSegment((b"b",), "webm", 48000, start_time=12.0, duration_ms=700.0)
        merged = first.merged_with(second)
        assert merged.frames == (b"a", b"b")
        assert merged.start_time == 10.0
        assert merged.duration_ms == 1200.0

    def test_merge_keeps_a_single_header(self):
        first = SpeechSegment((b"a",), "webm", 48000, 0.0, 500.0, header=b"H")
        second = SpeechSegment((b"b",), "webm", 48000, 1.0, 500.0, header=b"H")
        merged = first.merged_with(second)
        assert merged.encode() == b"Hab"
        assert merged.byte_length == 3

    def test_pcm_to_wav_drops_partial_sample(self):
        encoded = pcm_to_wav(b"\x01\x02\x03", sample_rate=16000)
        with wave.open(io.BytesIO(encoded), "rb") as wav_file:
            assert wav_file.getnframes() == 1


@pytest.mark.unit
class TestRollingBuffer:
    def test_drain_returns_everything_and_clears(self):
        buffer = RollingBuffer(max_bytes=100)
        buffer.append(b"abc")
        buffer.append(b"def")
        assert buffer.total_bytes == 6
        assert buffer.drain() == b"abcdef"
        assert buffer.total_bytes == 0
        assert len(buffer) == 0

    def test_oldest_chunks_dropped_over_cap(self):
        buffer = RollingBuffer(max_bytes=5)
        for chunk in (b"aa", b"bb", b"cc"):
            buffer.append(chunk)
        assert buffer.drain() == b"bbcc"

    def test_zero_cap_disables_buffering(self):
        buffer = RollingBuffer(max_bytes=0)
        buffer.append(b"abc")
        assert buffer.total_bytes == 0

    def test_header_survives_eviction_and_leads_drain(self):
        buffer = RollingBuffer(max_bytes=4)
        buffer.header = b"HEAD"
        for chunk in (b"aa", b"bb", b"cc"):
            buffer.append(chunk)
        assert buffer.total_bytes == 4
        assert buffer.drain() == b"HEADbbcc"
        buffer.append(b"dd")
        assert buffer.drain() == b"HEADdd"

    def test_header_alone_drains_empty(self):
        buffer = RollingBuffer(max_bytes=10)
        buffer.header = b"HEAD"
        assert buffer.drain() == b""

    def test_reset_clears_header(self):
        buffer = RollingBuffer(max_bytes=10)
        buffer.header = b"HEAD"
        buffer.append(b"aa")
        buffer.reset()
        assert buffer.header == b""
        assert buffer.total_bytes == 0

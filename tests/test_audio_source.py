"""
Tests for the PCM sample sources.
Run with:  pytest tests/test_audio_source.py
"""

from __future__ import annotations

import wave
from types import SimpleNamespace

import numpy as np
import pytest

from pcg_monitor import audio_source
from pcg_monitor.audio_source import (
    ArraySource,
    MicrophoneSource,
    WaveFileSource,
    decode_pcm16,
)
from pcg_monitor.errors import SourceAcquisitionError


def _write_wav(path, samples, sample_rate=8000, channels=1, width=2) -> None:
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(width)
        wav.setframerate(sample_rate)
        wav.writeframes(np.asarray(samples, dtype="<i2").tobytes())


# ---------------------------------------------------------------------------
# Fake sounddevice module
# ---------------------------------------------------------------------------

class _FakePortAudioError(Exception):
    pass


class _FakeStream:
    fail_on_open = False

    def __init__(self, samplerate, blocksize, device, channels, dtype):
        if _FakeStream.fail_on_open:
            raise _FakePortAudioError("Invalid device")
        self.kwargs = dict(samplerate=samplerate, blocksize=blocksize,
                           device=device, channels=channels, dtype=dtype)
        self.started = False
        self.closed = False
        self.reads = [
            (np.array([1, -2, 3], dtype="<i2").tobytes(), False),
            (np.array([4, 5], dtype="<i2").tobytes(), True),
        ]

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def close(self):
        self.closed = True

    def read(self, frames):
        if not self.reads:
            raise _FakePortAudioError("Stream stopped")
        return self.reads.pop(0)


@pytest.fixture
def fake_sd(monkeypatch):
    _FakeStream.fail_on_open = False
    fake = SimpleNamespace(RawInputStream=_FakeStream, PortAudioError=_FakePortAudioError)
    monkeypatch.setattr(audio_source, "sd", fake)
    return fake


# ---------------------------------------------------------------------------
# decode_pcm16
# ---------------------------------------------------------------------------

class TestDecode:

    def test_little_endian_signed(self):
        out = decode_pcm16(b"\x01\x00\xff\xff\x00\x80\xff\x7f")
        np.testing.assert_array_equal(out, [1, -1, -32768, 32767])
        assert out.dtype == np.int16

    def test_trailing_odd_byte_ignored(self):
        np.testing.assert_array_equal(decode_pcm16(b"\x02\x00\x05"), [2])

    def test_empty(self):
        assert len(decode_pcm16(b"")) == 0


# ---------------------------------------------------------------------------
# ArraySource
# ---------------------------------------------------------------------------

class TestArraySource:

    def test_from_signal_splits_into_chunks(self):
        src = ArraySource.from_signal(np.arange(10), chunk_samples=4)
        with src:
            chunks = list(src.chunks())
        assert [len(c) for c in chunks] == [4, 4, 2]
        np.testing.assert_array_equal(np.concatenate(chunks), np.arange(10))

    def test_empty_chunks_skipped_by_iterator(self):
        with ArraySource([[1, 2], [], [3]]) as src:
            assert [c.tolist() for c in src.chunks()] == [[1, 2], [3]]

    def test_read_returns_none_at_end(self):
        with ArraySource([[1]]) as src:
            assert src.read_chunk().tolist() == [1]
            assert src.read_chunk() is None

    def test_read_requires_open(self):
        src = ArraySource([[1]])
        with pytest.raises(RuntimeError):
            src.read_chunk()

    def test_close_is_idempotent(self):
        src = ArraySource([[1]])
        src.open()
        src.close()
        src.close()
        assert src.is_open is False


# ---------------------------------------------------------------------------
# WaveFileSource
# ---------------------------------------------------------------------------

class TestWaveFileSource:

    def test_replays_file_in_chunks(self, tmp_path):
        path = tmp_path / "heart.wav"
        samples = np.arange(-50, 50, dtype=np.int16)
        _write_wav(path, samples, sample_rate=8000)

        src = WaveFileSource(path, chunk_samples=30)
        with src:
            assert src.sample_rate == 8000
            chunks = list(src.chunks())
        assert [len(c) for c in chunks] == [30, 30, 30, 10]
        np.testing.assert_array_equal(np.concatenate(chunks), samples)

    def test_stereo_rejected(self, tmp_path):
        path = tmp_path / "stereo.wav"
        _write_wav(path, [0, 0, 1, 1], channels=2)
        with pytest.raises(SourceAcquisitionError):
            WaveFileSource(path).open()

    def test_8bit_rejected(self, tmp_path):
        path = tmp_path / "u8.wav"
        with wave.open(str(path), "wb") as wav:
            wav.setnchannels(1)
            wav.setsampwidth(1)
            wav.setframerate(8000)
            wav.writeframes(bytes([128, 130, 126]))
        with pytest.raises(SourceAcquisitionError):
            WaveFileSource(path).open()

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceAcquisitionError):
            WaveFileSource(tmp_path / "nope.wav").open()

    def test_not_a_wav(self, tmp_path):
        path = tmp_path / "junk.wav"
        path.write_bytes(b"definitely not RIFF")
        with pytest.raises(SourceAcquisitionError):
            WaveFileSource(path).open()


# ---------------------------------------------------------------------------
# MicrophoneSource
# ---------------------------------------------------------------------------

class TestMicrophoneSource:

    def test_opens_mono_int16_stream(self, fake_sd):
        src = MicrophoneSource(sample_rate=44100, chunk_samples=1376, device=3)
        src.open()
        assert src._stream.started is True
        assert src._stream.kwargs == dict(samplerate=44100, blocksize=1376,
                                          device=3, channels=1, dtype="int16")
        src.close()

    def test_reads_until_stream_error(self, fake_sd):
        with MicrophoneSource(chunk_samples=3) as src:
            assert src.read_chunk().tolist() == [1, -2, 3]
            assert src.read_chunk().tolist() == [4, 5]
            assert src.overflow_count == 1
            assert src.read_chunk() is None

    def test_open_failure_is_acquisition_error(self, fake_sd):
        _FakeStream.fail_on_open = True
        with pytest.raises(SourceAcquisitionError):
            MicrophoneSource().open()

    def test_missing_portaudio(self, monkeypatch):
        monkeypatch.setattr(audio_source, "sd", None)
        with pytest.raises(SourceAcquisitionError):
            MicrophoneSource().open()
        with pytest.raises(SourceAcquisitionError):
            audio_source.list_input_devices()

    def test_list_input_devices_filters_outputs(self, monkeypatch):
        devices = [
            {"name": "Speakers", "max_input_channels": 0, "default_samplerate": 48000.0},
            {"name": "Stethoscope Mic", "max_input_channels": 1, "default_samplerate": 44100.0},
        ]
        fake = SimpleNamespace(query_devices=lambda: devices)
        monkeypatch.setattr(audio_source, "sd", fake)
        assert audio_source.list_input_devices() == [
            {"index": 1, "name": "Stethoscope Mic", "channels": 1, "default_samplerate": 44100.0},
        ]

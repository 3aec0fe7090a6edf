"""
Sample sources.

Every source delivers mono signed 16-bit PCM in chunks through
:meth:`SampleSource.read_chunk`:

- a non-empty ``int16`` array is a chunk of samples;
- an empty array is a transient read failure (the caller skips it);
- ``None`` signals end of stream.

:class:`MicrophoneSource` reads a live input device through sounddevice.
:class:`WaveFileSource` replays a 16-bit mono ``.wav`` recording, which is
handy for development without a stethoscope microphone.
"""

from __future__ import annotations

import logging
import time
import wave
from pathlib import Path
from typing import Generator, List, Optional, Sequence

import numpy as np

from pcg_monitor.errors import SourceAcquisitionError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# sounddevice needs the PortAudio shared library at import time
# ---------------------------------------------------------------------------
try:
    import sounddevice as sd
    _SD_IMPORT_ERROR: Optional[OSError] = None
except OSError as _exc:
    sd = None
    _SD_IMPORT_ERROR = _exc
    logger.warning("PortAudio not available – microphone input disabled (%s).", _exc)


def decode_pcm16(data: bytes) -> np.ndarray:
    """
    Decode little-endian signed 16-bit PCM bytes.

    A trailing odd byte (half a sample) is ignored.
    """
    usable = len(data) - (len(data) % 2)
    return np.frombuffer(data[:usable], dtype="<i2").astype(np.int16)


class SampleSource:
    """
    Base class for pull-based PCM sources.

    Subclasses implement :meth:`_open`, :meth:`_close` and :meth:`_read`.
    """

    def __init__(self, sample_rate: int = 44100, chunk_samples: int = 1376) -> None:
        self.sample_rate = sample_rate
        self.chunk_samples = chunk_samples
        self._opened = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Acquire the source.  Raises :class:`SourceAcquisitionError`."""
        if self._opened:
            return
        self._open()
        self._opened = True

    def close(self) -> None:
        if not self._opened:
            return
        self._opened = False
        self._close()

    @property
    def is_open(self) -> bool:
        return self._opened

    def __enter__(self) -> "SampleSource":
        self.open()
        return self

    def __exit__(self, *_) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_chunk(self) -> Optional[np.ndarray]:
        """Return the next chunk, an empty array on a transient failure, or *None* at end."""
        if not self._opened:
            raise RuntimeError("Source is not open.  Call open() first.")
        return self._read()

    def chunks(self) -> Generator[np.ndarray, None, None]:
        """
        Yield non-empty chunks until end of stream.

        Usage::

            with MicrophoneSource() as src:
                for chunk in src.chunks():
                    state.ingest(chunk)
        """
        while self._opened:
            chunk = self.read_chunk()
            if chunk is None:
                break
            if len(chunk) == 0:
                continue
            yield chunk

    def _open(self) -> None:
        raise NotImplementedError

    def _close(self) -> None:
        raise NotImplementedError

    def _read(self) -> Optional[np.ndarray]:
        raise NotImplementedError


class MicrophoneSource(SampleSource):
    """
    Live mono input through PortAudio.

    Parameters
    ----------
    sample_rate:
        Capture rate in Hz.
    chunk_samples:
        Samples per blocking read.
    device:
        sounddevice device index or name substring; *None* for the default input.
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        chunk_samples: int = 1376,
        device: int | str | None = None,
    ) -> None:
        super().__init__(sample_rate, chunk_samples)
        self.device = device
        self._stream = None
        self.overflow_count = 0

    def _open(self) -> None:
        if sd is None:
            raise SourceAcquisitionError(f"PortAudio library not found: {_SD_IMPORT_ERROR}")
        try:
            stream = sd.RawInputStream(
                samplerate=self.sample_rate,
                blocksize=self.chunk_samples,
                device=self.device,
                channels=1,
                dtype="int16",
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            raise SourceAcquisitionError(
                f"Cannot open input device {self.device!r} at {self.sample_rate} Hz: {exc}"
            ) from exc
        self._stream = stream
        self.overflow_count = 0
        logger.info(
            "Microphone opened – device=%s sample_rate=%d chunk=%d",
            self.device if self.device is not None else "default",
            self.sample_rate,
            self.chunk_samples,
        )

    def _close(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        except sd.PortAudioError as exc:
            logger.warning("Error while closing input stream: %s", exc)
        self._stream = None
        logger.info("Microphone closed.")

    def _read(self) -> Optional[np.ndarray]:
        try:
            data, overflowed = self._stream.read(self.chunk_samples)
        except sd.PortAudioError as exc:
            logger.error("Input stream failed: %s", exc)
            return None
        if overflowed:
            self.overflow_count += 1
            logger.debug("Input overflow (%d so far).", self.overflow_count)
        return decode_pcm16(bytes(data))


class WaveFileSource(SampleSource):
    """
    Replays a mono 16-bit PCM ``.wav`` file.

    Parameters
    ----------
    path:
        File to read.
    chunk_samples:
        Samples per read.
    realtime:
        Sleep between chunks so playback runs at the file's sample rate.
    """

    def __init__(
        self,
        path: str | Path,
        chunk_samples: int = 1376,
        realtime: bool = False,
    ) -> None:
        super().__init__(sample_rate=0, chunk_samples=chunk_samples)
        self.path = Path(path)
        self.realtime = realtime
        self._wav: Optional[wave.Wave_read] = None
        self._next_due = 0.0

    def _open(self) -> None:
        try:
            wav = wave.open(str(self.path), "rb")
        except (OSError, EOFError, wave.Error) as exc:
            raise SourceAcquisitionError(f"Cannot open {self.path}: {exc}") from exc
        if wav.getnchannels() != 1 or wav.getsampwidth() != 2:
            channels, width = wav.getnchannels(), wav.getsampwidth()
            wav.close()
            raise SourceAcquisitionError(
                f"{self.path} must be mono 16-bit PCM "
                f"(got {channels} channel(s), {8 * width}-bit)"
            )
        self._wav = wav
        self.sample_rate = wav.getframerate()
        self._next_due = time.monotonic()
        logger.info(
            "Replaying %s – sample_rate=%d frames=%d",
            self.path, self.sample_rate, wav.getnframes(),
        )

    def _close(self) -> None:
        if self._wav is not None:
            self._wav.close()
            self._wav = None

    def _read(self) -> Optional[np.ndarray]:
        data = self._wav.readframes(self.chunk_samples)
        if not data:
            return None
        if self.realtime:
            self._next_due += (len(data) // 2) / self.sample_rate
            delay = self._next_due - time.monotonic()
            if delay > 0:
                time.sleep(delay)
        return decode_pcm16(data)


class ArraySource(SampleSource):
    """In-memory source that serves pre-built chunks in order."""

    def __init__(self, chunks: Sequence[Sequence[int] | np.ndarray], sample_rate: int = 44100) -> None:
        super().__init__(sample_rate=sample_rate, chunk_samples=0)
        self._chunks: List[np.ndarray] = [np.asarray(c, dtype=np.int16) for c in chunks]
        self._pos = 0

    @classmethod
    def from_signal(
        cls,
        signal: Sequence[int] | np.ndarray,
        chunk_samples: int = 1376,
        sample_rate: int = 44100,
    ) -> "ArraySource":
        """Split a continuous signal into ``chunk_samples``-sized chunks."""
        arr = np.asarray(signal, dtype=np.int16)
        chunks = [arr[i:i + chunk_samples] for i in range(0, len(arr), chunk_samples)]
        src = cls(chunks, sample_rate=sample_rate)
        src.chunk_samples = chunk_samples
        return src

    def _open(self) -> None:
        self._pos = 0

    def _close(self) -> None:
        pass

    def _read(self) -> Optional[np.ndarray]:
        if self._pos >= len(self._chunks):
            return None
        chunk = self._chunks[self._pos]
        self._pos += 1
        return chunk


def list_input_devices() -> List[dict]:
    """Return ``{index, name, channels, default_samplerate}`` for every input device."""
    if sd is None:
        raise SourceAcquisitionError(f"PortAudio library not found: {_SD_IMPORT_ERROR}")
    devices = []
    for i, dev in enumerate(sd.query_devices()):
        if dev["max_input_channels"] < 1:
            continue
        devices.append({
            "index": i,
            "name": dev["name"],
            "channels": dev["max_input_channels"],
            "default_samplerate": dev["default_samplerate"],
        })
    return devices

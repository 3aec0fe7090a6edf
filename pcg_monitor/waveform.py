"""
Bounded waveform history.

Holds the most recent ``capacity`` samples for display.  Oldest samples are
evicted first; the history never grows beyond its capacity.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterable

import numpy as np


class WaveformHistory:
    """
    FIFO buffer of recent 16-bit samples.

    Parameters
    ----------
    capacity:
        Maximum number of samples retained (``sample_rate × window_seconds``).
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._buffer: Deque[int] = deque(maxlen=capacity)
        self._total_samples = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def push(self, sample: int) -> None:
        """Append one sample, evicting the oldest when full."""
        self._buffer.append(sample)
        self._total_samples += 1

    def extend(self, samples: Iterable[int]) -> None:
        for sample in samples:
            self.push(sample)

    def snapshot(self) -> np.ndarray:
        """
        Return a read-only copy of the buffered samples, oldest first.

        The copy is detached from the history, so it stays valid while
        ingestion continues.
        """
        out = np.fromiter(self._buffer, dtype=np.int16, count=len(self._buffer))
        out.flags.writeable = False
        return out

    def clear(self) -> None:
        """Drop all samples and reset the running total."""
        self._buffer.clear()
        self._total_samples = 0

    @property
    def capacity(self) -> int:
        return self._buffer.maxlen

    @property
    def total_samples(self) -> int:
        """Samples pushed since creation (or the last :meth:`clear`)."""
        return self._total_samples

    @property
    def fill_ratio(self) -> float:
        """How full the history is (0 – 1)."""
        return len(self._buffer) / self._buffer.maxlen

    def __len__(self) -> int:
        return len(self._buffer)

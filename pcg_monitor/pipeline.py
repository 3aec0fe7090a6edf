"""
Shared pipeline state.

One ingestion thread feeds PCM chunks in; any number of readers (the
renderer, a headless logger) take snapshots out.  A single lock guards the
waveform history, detector, tracker and threshold together:

- :meth:`PipelineState.ingest` holds it for a whole chunk, so a reader never
  sees a peak counted but not yet reflected in the timestamp window.
- :meth:`PipelineState.read_snapshot` holds it only while copying.
- :meth:`PipelineState.set_threshold` takes it for the write, which makes the
  new value effective from the next processed sample.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from pcg_monitor.beat_tracker import BeatTracker
from pcg_monitor.config import PipelineConfig
from pcg_monitor.errors import ConfigError
from pcg_monitor.peak_detector import PeakDetector, PeakEvent
from pcg_monitor.waveform import WaveformHistory

logger = logging.getLogger(__name__)


def wall_clock_ms() -> float:
    """Current wall-clock time in milliseconds."""
    return time.time() * 1000.0


@dataclass(frozen=True)
class PipelineSnapshot:
    """Self-consistent copy of the pipeline state at one instant."""

    waveform: np.ndarray
    peak_count: int
    bpm: Optional[int]
    threshold: int
    peak_timestamps: Tuple[float, ...]
    total_samples: int
    sample_rate: int

    @property
    def elapsed_seconds(self) -> float:
        """Stream time covered by all samples ingested so far."""
        return self.total_samples / self.sample_rate


class PipelineState:
    """
    Lock-guarded aggregate of history, detector, tracker and threshold.

    Parameters
    ----------
    config:
        Pipeline parameters.  Defaults to :class:`PipelineConfig()`.
    clock:
        Callable returning the current time in milliseconds.  Read once per
        chunk when :meth:`ingest` is not given an explicit timestamp.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        clock: Callable[[], float] = wall_clock_ms,
    ) -> None:
        self.config = config if config is not None else PipelineConfig()
        self._clock = clock
        self._lock = threading.Lock()

        self._history = WaveformHistory(self.config.history_capacity)
        self._detector = PeakDetector(self.config.cooldown_samples)
        self._tracker = BeatTracker(self.config.timestamp_window)
        self._threshold = self.config.threshold

    # ------------------------------------------------------------------
    # Writer side
    # ------------------------------------------------------------------

    def ingest(
        self,
        chunk: Sequence[int] | np.ndarray,
        timestamp_ms: float | None = None,
    ) -> List[PeakEvent]:
        """
        Process *chunk* in arrival order and return the peaks it produced.

        Every sample of the chunk is stamped with the same time: the clock
        is read once, when the chunk arrives.
        """
        if isinstance(chunk, np.ndarray):
            samples = chunk.tolist()
        else:
            samples = [int(s) for s in chunk]
        if not samples:
            return []

        if timestamp_ms is None:
            timestamp_ms = self._clock()

        events: List[PeakEvent] = []
        with self._lock:
            history, detector, tracker = self._history, self._detector, self._tracker
            for sample in samples:
                history.push(sample)
                event = detector.step(sample, self._threshold, timestamp_ms)
                if event is not None:
                    tracker.on_peak_event(event.ordinal, event.timestamp_ms)
                    events.append(event)

        if events:
            logger.debug(
                "Chunk of %d samples: %d peak(s), total=%d",
                len(samples), len(events), events[-1].ordinal,
            )
        return events

    def set_threshold(self, value: int) -> None:
        """Set the peak threshold; raises :class:`ConfigError` if out of range."""
        value = int(value)
        if not 0 <= value <= self.config.threshold_max:
            raise ConfigError(
                f"threshold must be within [0, {self.config.threshold_max}], got {value}"
            )
        with self._lock:
            self._threshold = value
        logger.info("Peak threshold set to %d", value)

    def adjust_threshold(self, delta: int) -> int:
        """Shift the threshold by *delta*, clamped into range.  Returns the new value."""
        with self._lock:
            value = max(0, min(self.config.threshold_max, self._threshold + int(delta)))
            self._threshold = value
        logger.info("Peak threshold set to %d", value)
        return value

    def reset(self) -> None:
        """Clear waveform, peaks and BPM.  The threshold is kept."""
        with self._lock:
            self._history.clear()
            self._detector.reset()
            self._tracker.reset()
        logger.info("Pipeline state reset.")

    # ------------------------------------------------------------------
    # Reader side
    # ------------------------------------------------------------------

    def read_snapshot(self) -> PipelineSnapshot:
        with self._lock:
            return PipelineSnapshot(
                waveform=self._history.snapshot(),
                peak_count=self._detector.peak_count,
                bpm=self._tracker.bpm,
                threshold=self._threshold,
                peak_timestamps=self._tracker.timestamps,
                total_samples=self._history.total_samples,
                sample_rate=self.config.sample_rate,
            )

    @property
    def threshold(self) -> int:
        with self._lock:
            return self._threshold

    @property
    def peak_count(self) -> int:
        with self._lock:
            return self._detector.peak_count

    @property
    def bpm(self) -> Optional[int]:
        with self._lock:
            return self._tracker.bpm

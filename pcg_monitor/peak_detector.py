"""
Streaming peak detector.

Algorithm
---------
For every incoming sample ``s`` with ``a = |s|``:

1. A *rising-edge peak* is registered when ``a >= threshold``, the previous
   absolute amplitude was below the threshold and the cooldown counter is 0.
   The peak counter is incremented and the cooldown is re-armed.
2. Otherwise, dropping below the threshold clears the in-peak flag.
3. The cooldown counter is decremented (after the edge test, so a freshly
   armed cooldown is first decremented on the *same* step).
4. ``a`` becomes the previous amplitude.

A sustained excursion above the threshold therefore yields one event, and the
refractory period keeps ringing of the same heart sound from counting twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeakEvent:
    """A detected rising edge."""

    ordinal: int          # 1-based running count of detected peaks
    sample_index: int     # 0-based index of the sample in the stream
    timestamp_ms: float   # wall-clock (or replay) time of the chunk


class PeakDetector:
    """
    Edge-triggered amplitude detector with refractory suppression.

    Parameters
    ----------
    cooldown_samples:
        Number of samples after a peak during which no new peak is accepted.
    """

    def __init__(self, cooldown_samples: int = 3000) -> None:
        if cooldown_samples < 0:
            raise ValueError(f"cooldown_samples must be >= 0, got {cooldown_samples}")
        self.cooldown_samples = cooldown_samples
        self.reset()

    def step(self, sample: int, threshold: int, timestamp_ms: float) -> Optional[PeakEvent]:
        """
        Consume one sample and return a :class:`PeakEvent` on a rising edge.

        *threshold* is passed on every call so a concurrent change applies
        from the very next sample.
        """
        # int() first: abs() of a numpy int16 -32768 would wrap around.
        a = abs(int(sample))
        event = None

        if a >= threshold and self._previous_abs < threshold and self._cooldown == 0:
            self._is_peak = True
            self._peak_count += 1
            self._cooldown = self.cooldown_samples
            event = PeakEvent(self._peak_count, self._samples_seen, timestamp_ms)
            logger.debug(
                "Peak #%d at sample %d (|s|=%d, threshold=%d)",
                self._peak_count, self._samples_seen, a, threshold,
            )
        elif a < threshold:
            self._is_peak = False

        if self._cooldown > 0:
            self._cooldown -= 1

        self._previous_abs = a
        self._samples_seen += 1
        return event

    def reset(self) -> None:
        """Forget all detector state."""
        self._previous_abs = 0
        self._cooldown = 0
        self._peak_count = 0
        self._is_peak = False
        self._samples_seen = 0

    @property
    def peak_count(self) -> int:
        return self._peak_count

    @property
    def cooldown(self) -> int:
        """Remaining refractory samples."""
        return self._cooldown

    @property
    def is_peak(self) -> bool:
        """Whether the last sample was inside a detected excursion."""
        return self._is_peak

    @property
    def previous_abs(self) -> int:
        return self._previous_abs

    @property
    def samples_seen(self) -> int:
        return self._samples_seen

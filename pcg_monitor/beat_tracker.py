"""
Beat tracker — peak timestamps to BPM.

Each heartbeat produces two heart sounds (S1 and S2), and the detector
reports both as rising edges.  Only the odd ordinals (1st, 3rd, 5th, …) are
taken as the start of a cardiac cycle.  This pairing is a modelling
assumption: a missed or spurious edge shifts the parity until the signal
realigns.

BPM is ``60000 / mean(interval)`` over the consecutive differences of the
last ``window`` cycle timestamps (milliseconds), recomputed from scratch on
every new timestamp.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import Deque, Optional, Tuple

logger = logging.getLogger(__name__)


class BeatTracker:
    """
    Bounded history of cardiac-cycle timestamps with a sticky BPM estimate.

    Parameters
    ----------
    window:
        Maximum number of timestamps kept (default 10, i.e. up to 9 intervals).
    """

    def __init__(self, window: int = 10) -> None:
        if window < 2:
            raise ValueError(f"window must be >= 2, got {window}")
        self._timestamps: Deque[float] = deque(maxlen=window)
        self._bpm: Optional[int] = None
        self._average_interval: Optional[float] = None

    def on_peak_event(self, ordinal: int, timestamp_ms: float) -> bool:
        """
        Feed one peak.  Returns *True* when the BPM estimate was updated.

        Even ordinals are ignored.  With fewer than two timestamps, or when
        the mean interval is zero, the previous estimate is kept.
        """
        if ordinal % 2 == 0:
            return False

        self._timestamps.append(timestamp_ms)
        if len(self._timestamps) < 2:
            return False

        # Consecutive differences telescope to (last - first).
        n_intervals = len(self._timestamps) - 1
        average = (self._timestamps[-1] - self._timestamps[0]) / n_intervals
        if average <= 0:
            logger.debug(
                "Degenerate interval over %d timestamps – BPM update skipped.",
                len(self._timestamps),
            )
            return False

        self._average_interval = average
        # Half-up, not banker's rounding.
        self._bpm = int(math.floor(60000.0 / average + 0.5))
        logger.debug("BPM=%d (mean interval %.1f ms)", self._bpm, average)
        return True

    def reset(self) -> None:
        self._timestamps.clear()
        self._bpm = None
        self._average_interval = None

    @property
    def bpm(self) -> Optional[int]:
        """Last computed BPM, or *None* if no estimate exists yet."""
        return self._bpm

    @property
    def average_interval_ms(self) -> Optional[float]:
        return self._average_interval

    @property
    def timestamps(self) -> Tuple[float, ...]:
        return tuple(self._timestamps)

    @property
    def window(self) -> int:
        return self._timestamps.maxlen

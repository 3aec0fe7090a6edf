"""
Real-time waveform display.

Renders a :class:`~pcg_monitor.pipeline.PipelineSnapshot` onto an OpenCV
canvas:
  • The last ``window_seconds`` of the PCG waveform.
  • The ±threshold lines.
  • Peak counter, heart-rate and threshold readouts.
  • Time and amplitude axis labels.

Keyboard handling for the threshold control lives here too, since it shares
the OpenCV window.
"""

from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from pcg_monitor.config import SAMPLE_MAX
from pcg_monitor.pipeline import PipelineSnapshot, PipelineState


# ---------------------------------------------------------------------------
# Colour palette (BGR)
# ---------------------------------------------------------------------------
_GREEN  = (0, 220,  80)
_RED    = (0,  50, 220)
_YELLOW = (0, 210, 210)
_WHITE  = (255, 255, 255)
_GREY   = (120, 120, 120)
_DARK   = (30, 30, 30)

_KEY_ESC = 27
_THRESHOLD_UP = (ord("+"), ord("="), ord("]"))
_THRESHOLD_DOWN = (ord("-"), ord("_"), ord("["))


class Visualizer:
    """
    Draws the phonocardiogram monitor UI.

    Parameters
    ----------
    resolution:
        (width, height) of the canvas.
    window_seconds:
        Duration covered by the x-axis; should match the waveform history.
    margin:
        Pixel padding kept free for the axis labels.
    n_time_labels, n_amplitude_labels:
        Number of tick labels on each axis.
    """

    def __init__(
        self,
        resolution: Tuple[int, int] = (800, 600),
        window_seconds: float = 5.0,
        margin: int = 20,
        n_time_labels: int = 10,
        n_amplitude_labels: int = 10,
    ) -> None:
        self.w, self.h = resolution
        self.window_seconds = window_seconds
        self.margin = margin
        self.n_time_labels = n_time_labels
        self.n_amplitude_labels = n_amplitude_labels

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def draw(self, snapshot: PipelineSnapshot) -> np.ndarray:
        """Return a new BGR canvas showing *snapshot*."""
        frame = np.full((self.h, self.w, 3), _DARK, dtype=np.uint8)

        self._draw_threshold(frame, snapshot.threshold)
        if len(snapshot.waveform) > 1:
            self._draw_waveform(frame, snapshot.waveform)
        self._draw_readouts(frame, snapshot)
        self._draw_axes(frame, snapshot.elapsed_seconds)
        return frame

    def handle_key(self, key: int, state: PipelineState) -> bool:
        """
        Apply a key press to *state*.  Returns *False* when the user quits.

        ``+``/``-`` move the threshold by the configured step, ``r`` resets.
        """
        if key in (ord("q"), _KEY_ESC):
            return False
        step = state.config.threshold_step
        if key in _THRESHOLD_UP:
            state.adjust_threshold(step)
        elif key in _THRESHOLD_DOWN:
            state.adjust_threshold(-step)
        elif key == ord("r"):
            state.reset()
        return True

    # ------------------------------------------------------------------
    # Private drawing helpers
    # ------------------------------------------------------------------

    def _amplitude_to_y(self, amplitude: np.ndarray | float) -> np.ndarray | float:
        """Map a sample value onto the canvas, +full scale at the top."""
        half = self.h / 2.0
        return half - np.asarray(amplitude, dtype=np.float64) * half / SAMPLE_MAX

    def _draw_waveform(self, frame: np.ndarray, waveform: np.ndarray) -> None:
        # One point per pixel column is plenty; the history can hold 220k samples.
        n = len(waveform)
        idx = np.linspace(0, n - 1, min(n, self.w)).astype(int)
        sig = waveform[idx]

        xs = np.linspace(0, self.w - 1, len(sig)).astype(np.int32)
        ys = np.clip(self._amplitude_to_y(sig), 0, self.h - 1).astype(np.int32)
        pts = np.column_stack([xs, ys])
        cv2.polylines(frame, [pts[:, None, :]], False, _GREEN, 1, cv2.LINE_AA)

    def _draw_threshold(self, frame: np.ndarray, threshold: int) -> None:
        if threshold > SAMPLE_MAX:
            return
        for level in (threshold, -threshold):
            y = int(self._amplitude_to_y(level))
            cv2.line(frame, (0, y), (self.w - 1, y), _GREY, 1, cv2.LINE_AA)

    def _draw_readouts(self, frame: np.ndarray, snapshot: PipelineSnapshot) -> None:
        x = self.w - self.w // 3 - 5
        bpm_text = f"{snapshot.bpm} BPM" if snapshot.bpm is not None else "--"
        lines = (
            (f"Peak Counter: {snapshot.peak_count}", _RED),
            (f"Heart Rate: {bpm_text}", _RED),
            (f"Threshold: {snapshot.threshold}", _YELLOW),
        )
        for i, (text, col) in enumerate(lines):
            cv2.putText(
                frame, text,
                (x, 24 + 28 * i), cv2.FONT_HERSHEY_SIMPLEX, 0.7, col, 2, cv2.LINE_AA,
            )

    def _draw_axes(self, frame: np.ndarray, elapsed_seconds: float) -> None:
        cv2.putText(
            frame, "Time (s)",
            (self.w // 2, self.h - 20), cv2.FONT_HERSHEY_SIMPLEX, 0.5, _WHITE, 1, cv2.LINE_AA,
        )
        cv2.putText(
            frame, "Amplitude",
            (40, 20), cv2.FONT_HERSHEY_SIMPLEX, 0.5, _WHITE, 1, cv2.LINE_AA,
        )

        start = max(0.0, elapsed_seconds - self.window_seconds)
        for i in range(1, self.n_time_labels + 1):
            t = start + i * self.window_seconds / self.n_time_labels
            x = int(i * self.w / self.n_time_labels)
            cv2.putText(
                frame, f"{t:.2f}",
                (x - 40, self.h - 5), cv2.FONT_HERSHEY_SIMPLEX, 0.4, _WHITE, 1, cv2.LINE_AA,
            )

        span = self.h - 2 * self.margin
        for i in range(self.n_amplitude_labels + 1):
            amplitude = -1.0 + i * 2.0 / self.n_amplitude_labels
            y = self.margin + int(span - i * span / self.n_amplitude_labels)
            cv2.putText(
                frame, f"{amplitude:.2f}",
                (5, y), cv2.FONT_HERSHEY_SIMPLEX, 0.4, _WHITE, 1, cv2.LINE_AA,
            )

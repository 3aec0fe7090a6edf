"""Shared pytest fixtures: synthetic heart-sound-like pulse trains."""

from __future__ import annotations

import numpy as np
import pytest


def make_pulse_train(
    n_pulses: int,
    period: int = 100,
    width: int = 10,
    amplitude: int = 20000,
    offset: int = 50,
) -> np.ndarray:
    """
    Silence with ``n_pulses`` rectangular bursts of ``width`` samples,
    one every ``period`` samples, starting ``offset`` samples into each period.
    """
    signal = np.zeros(n_pulses * period, dtype=np.int16)
    for k in range(n_pulses):
        start = k * period + offset
        signal[start:start + width] = amplitude
    return signal


@pytest.fixture
def pulse_train():
    return make_pulse_train

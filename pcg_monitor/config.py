"""
Pipeline configuration.

All tunables of the detector live here instead of being scattered through
the processing code.  Defaults reproduce the reference setup: 44.1 kHz mono
microphone, 5 s display window, 3000-sample refractory period and a peak
threshold of 10000 adjustable between 0 and 40000.
"""

from __future__ import annotations

from dataclasses import dataclass

from pcg_monitor.errors import ConfigError

# Full scale of a signed 16-bit sample.
SAMPLE_MAX = 32767


@dataclass
class PipelineConfig:
    """
    Parameters of the streaming pipeline.

    Parameters
    ----------
    sample_rate:
        Samples per second delivered by the source.  Must match the device
        rate, otherwise the elapsed-time axis drifts.
    window_seconds:
        Length of the waveform history kept for display.
    cooldown_samples:
        Refractory period after a detected peak, in samples.
    threshold:
        Initial peak threshold (absolute amplitude).
    threshold_max:
        Upper bound of the runtime-adjustable threshold.
    threshold_step:
        Increment used by the interactive threshold control.
    chunk_samples:
        Number of samples requested from the source per read.
    timestamp_window:
        How many cardiac-cycle timestamps are averaged for BPM.
    """

    sample_rate: int = 44100
    window_seconds: float = 5.0
    cooldown_samples: int = 3000
    threshold: int = 10000
    threshold_max: int = 40000
    threshold_step: int = 500
    chunk_samples: int = 1376
    timestamp_window: int = 10

    def __post_init__(self) -> None:
        self.validate()

    @property
    def history_capacity(self) -> int:
        """Number of samples held by the waveform history."""
        return int(self.sample_rate * self.window_seconds)

    def validate(self) -> None:
        """Raise :class:`ConfigError` if any field is out of range."""
        if self.sample_rate <= 0:
            raise ConfigError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.window_seconds <= 0:
            raise ConfigError(f"window_seconds must be positive, got {self.window_seconds}")
        if self.history_capacity < 1:
            raise ConfigError("sample_rate * window_seconds must hold at least one sample")
        if self.cooldown_samples < 0:
            raise ConfigError(f"cooldown_samples must be >= 0, got {self.cooldown_samples}")
        if self.threshold_max < 0:
            raise ConfigError(f"threshold_max must be >= 0, got {self.threshold_max}")
        if not 0 <= self.threshold <= self.threshold_max:
            raise ConfigError(
                f"threshold must be within [0, {self.threshold_max}], got {self.threshold}"
            )
        if self.threshold_step <= 0:
            raise ConfigError(f"threshold_step must be positive, got {self.threshold_step}")
        if self.chunk_samples <= 0:
            raise ConfigError(f"chunk_samples must be positive, got {self.chunk_samples}")
        if self.timestamp_window < 2:
            raise ConfigError(f"timestamp_window must be >= 2, got {self.timestamp_window}")

"""Exception hierarchy for the PCG pipeline."""

from __future__ import annotations


class PcgMonitorError(Exception):
    """Base class for all pcg_monitor errors."""


class SourceAcquisitionError(PcgMonitorError):
    """The audio source could not be opened or started.  Fatal at startup."""


class ConfigError(PcgMonitorError, ValueError):
    """A configuration value is outside its valid range."""

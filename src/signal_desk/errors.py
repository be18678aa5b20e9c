from __future__ import annotations


class SignalDeskError(Exception):
    """Base class for every error raised by the signal desk."""


class InsufficientDataError(SignalDeskError):
    """The candle window is too short for the requested computation."""


class ComputationError(SignalDeskError):
    """Indicator, pattern or scoring logic failed unexpectedly."""


class SignalValidationError(SignalDeskError):
    """A computed signal failed its sanity checks."""


class PersistenceError(SignalDeskError):
    """The key-value store could not be read or written."""


class ProviderError(SignalDeskError):
    """The market data provider gave up after exhausting its retries."""

"""
Error taxonomy shared by the stores, the timer and the HTTP layer.
"""


class TrackerError(Exception):
    """Base class for errors raised by this application."""


class ValidationError(TrackerError, ValueError):
    """Malformed or out-of-domain input. Maps to a 4xx response."""


class StorageError(TrackerError):
    """A read or write against sqlite failed. Maps to a 5xx response."""


class NotFoundError(TrackerError, LookupError):
    """The addressed habit does not exist. Maps to a 404 response."""


class TimerStateError(TrackerError):
    """The requested timer change is not allowed in the current state."""

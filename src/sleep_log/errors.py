"""Exception types shared across Sleep Log."""

from __future__ import annotations


class SleepLogError(Exception):
    """Base class for Sleep Log errors."""


class InvalidObservationError(SleepLogError, ValueError):
    """Raised when timestamps or durations are malformed."""


class ModelLoadError(SleepLogError):
    """Raised when an external model artifact cannot be loaded."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot load model '{path}': {reason}")
        self.path = path
        self.reason = reason


class SessionNotFoundError(SleepLogError, LookupError):
    """Raised when a session id does not exist in the store."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id

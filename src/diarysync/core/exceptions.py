"""
diarysync exception hierarchy.

All diarysync exceptions inherit from DiarySyncError, making it easy for
consumers to catch library-level errors while still distinguishing specific
failure modes.
"""


class DiarySyncError(Exception):
    """Base exception class for all diarysync errors."""


class ConfigurationError(DiarySyncError):
    """Raised for configuration errors (missing keys, invalid values)."""


class NotFoundError(DiarySyncError):
    """Raised when a mutating operation addresses a card that does not exist."""


class RemoteIOError(DiarySyncError):
    """Raised when a document-store or object-store call fails or times out."""

    def __init__(self, message: str, *, operation: str = "", retryable: bool = False):
        super().__init__(message)
        self.operation = operation
        self.retryable = retryable


class PartialCompletionError(DiarySyncError):
    """Raised when some sub-operations of a batch failed.

    ``failed`` maps each failed key (image path, card key, step name) to the
    reason, so callers can retry just those.
    """

    def __init__(self, message: str, failed: dict[str, str] | None = None):
        super().__init__(message)
        self.failed = dict(failed or {})


class InvariantViolation(DiarySyncError):
    """Describes a refused count or binding change. Logged, not raised to callers."""

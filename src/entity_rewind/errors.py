"""Exception hierarchy for entity-rewind.

Planning errors (unknown entity type, unknown version) are raised before any
write. Errors raised while applying or persisting propagate out of the
enclosing transaction, which rolls back.
"""

from typing import Any


class RewindError(Exception):
    """Base exception for all entity-rewind errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for tool responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class NotTrackable(RewindError):
    """The entity's type is not registered for versioning."""


class VersionNotFound(RewindError):
    """The requested target version has no Version Record."""


class InvalidConfiguration(RewindError):
    """A tracking policy or its host table is malformed."""


class IntegrityViolation(RewindError):
    """A storage constraint rejected a write."""


class VersionConflict(RewindError):
    """Two writers raced for the same version number.

    Retrying the whole operation is safe.
    """

    retryable = True


class HistoryGap(RewindError):
    """A diff walk hit a missing intermediate Version Record."""

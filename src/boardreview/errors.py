"""Exceptions raised by the review queue core."""

from __future__ import annotations


class ReviewQueueError(RuntimeError):
    """Base class for review queue failures."""


class AccessDeniedError(ReviewQueueError):
    """Raised when a user is not authorized for any review queue."""


class UnknownQueueTypeError(ReviewQueueError):
    """Raised when a queue type name has no registered configuration."""


class UnknownStateError(ReviewQueueError):
    """Raised when a workflow state is missing from the catalog."""


class InvalidDecisionCodeError(ReviewQueueError):
    """Raised when a decision code has no mapping for the active queue type."""

    def __init__(self, queue_type: str, code: int) -> None:
        super().__init__(f"decision {code} is not valid for the {queue_type} queue")
        self.queue_type = queue_type
        self.code = code


class QueueNotFoundError(ReviewQueueError):
    """Raised when a saved queue id cannot be loaded."""


class StaleQueueError(ReviewQueueError):
    """Raised when a queue was replaced by another request since it was loaded."""


class UnknownReviewerError(ReviewQueueError):
    """Raised when the acting user is not in the store."""

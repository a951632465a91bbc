"""
Exceptions raised by the order progress subsystem.

Every exception carries keyword context that is logged alongside the message
and returned to API clients as error details.
"""

from typing import Any


class ProgressError(Exception):
    """Base exception for order progress errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class ProgressValidationError(ProgressError):
    """Raised when a request is malformed. Nothing has been mutated."""

    pass


class InvalidStageError(ProgressValidationError):
    """Raised when a stage id does not reference a known stage."""

    pass


class InvalidStatusError(ProgressValidationError):
    """Raised when a status is not a valid stage status."""

    pass


class BulkLimitExceededError(ProgressValidationError):
    """Raised when a bulk request has no order ids or too many."""

    pass


class ImmutableStateError(ProgressError):
    """Raised when a completed stage would be moved away from completed."""

    pass


class StorageError(ProgressError):
    """Raised when the backing store fails to read or write."""

    pass


class OrderNotFoundError(ProgressError):
    """Raised when an order does not exist."""

    pass


class NotificationQueueError(ProgressError):
    """Raised when notification drafts cannot be written to the queue."""

    pass


class NotificationNotFoundError(ProgressError):
    """Raised when a queued notification does not exist."""

    pass


class NotificationDispatchError(ProgressError):
    """Raised when a transport fails to deliver a notification."""

    pass

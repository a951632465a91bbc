"""Notification queue enums.

Channels a customer can opt into and the review/delivery lifecycle of a
queued notification.
"""

from enum import Enum


class NotificationChannel(str, Enum):
    """Delivery channel for a queued notification."""

    SMS = "sms"
    EMAIL = "email"

    @classmethod
    def from_string(cls, value: str) -> "NotificationChannel":
        """Convert string to NotificationChannel enum.

        Raises:
            ValueError: If value is not a valid channel
        """
        try:
            return cls(value.lower())
        except (ValueError, AttributeError):
            raise ValueError(f"Invalid notification channel: {value}")


class NotificationQueueStatus(str, Enum):
    """Lifecycle of a queued notification.

    Valid transitions:
    - PENDING_REVIEW -> APPROVED, SENT, FAILED
    - APPROVED -> PENDING_REVIEW, SENT, FAILED
    - FAILED -> PENDING_REVIEW, APPROVED (retry after review)
    - SENT -> (terminal state)
    """

    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    SENT = "sent"
    FAILED = "failed"

    @classmethod
    def from_string(cls, value: str) -> "NotificationQueueStatus":
        """Convert string to NotificationQueueStatus enum.

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.lower())
        except (ValueError, AttributeError):
            valid_values = ", ".join([s.value for s in cls])
            raise ValueError(
                f"Invalid notification status: {value}. "
                f"Valid values are: {valid_values}"
            )

    def is_terminal(self) -> bool:
        """Check if no further review or delivery is possible."""
        return self == NotificationQueueStatus.SENT

    def is_dispatchable(self) -> bool:
        """Check if an item in this status may be handed to a transport."""
        return self in {
            NotificationQueueStatus.PENDING_REVIEW,
            NotificationQueueStatus.APPROVED,
        }

    def is_reviewable(self) -> bool:
        """Check if an admin may set this status through review."""
        return self in {
            NotificationQueueStatus.PENDING_REVIEW,
            NotificationQueueStatus.APPROVED,
        }

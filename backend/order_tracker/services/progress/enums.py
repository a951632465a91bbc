"""Stage status enum and transition rules for order progress tracking.

This module defines the per-stage status used by the progress ledger together
with the table of status changes an admin may request for a single
(order, stage) pair.
"""

from enum import Enum
from typing import Dict, Set


class StageStatus(str, Enum):
    """Status of one production stage for one order.

    Valid transitions:
    - NOT_STARTED -> NOT_STARTED, IN_PROGRESS, COMPLETED
    - IN_PROGRESS -> NOT_STARTED, IN_PROGRESS, COMPLETED
    - COMPLETED -> COMPLETED (completion is immutable)
    """

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def from_string(cls, value: str) -> "StageStatus":
        """Convert string to StageStatus enum.

        Args:
            value: String representation of status

        Returns:
            StageStatus enum value

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError):
            valid_values = ", ".join([s.value for s in cls])
            raise ValueError(
                f"Invalid status: {value}. "
                f"Valid values are: {valid_values}"
            )

    def is_terminal(self) -> bool:
        """Check if status is terminal (no downgrade possible)."""
        return self == StageStatus.COMPLETED

    def implies_prior_completion(self) -> bool:
        """Check if reaching this status completes every earlier stage.

        Returns:
            True for IN_PROGRESS and COMPLETED
        """
        return self in {StageStatus.IN_PROGRESS, StageStatus.COMPLETED}

    @property
    def display_name(self) -> str:
        """Get human-readable display name for status."""
        return self.value.replace("_", " ").title()


STAGE_STATUS_TRANSITIONS: Dict[StageStatus, Set[StageStatus]] = {
    StageStatus.NOT_STARTED: {
        StageStatus.NOT_STARTED,
        StageStatus.IN_PROGRESS,
        StageStatus.COMPLETED,
    },
    StageStatus.IN_PROGRESS: {
        StageStatus.NOT_STARTED,
        StageStatus.IN_PROGRESS,
        StageStatus.COMPLETED,
    },
    StageStatus.COMPLETED: {
        StageStatus.COMPLETED,
    },
}


def validate_stage_status_transition(
    current: StageStatus,
    new: StageStatus,
) -> bool:
    """Validate if a stage status change is allowed.

    Args:
        current: Current stage status
        new: Desired new status

    Returns:
        True if transition is valid
    """
    return new in STAGE_STATUS_TRANSITIONS.get(current, set())

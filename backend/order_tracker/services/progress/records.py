"""
Plain data contracts exchanged between the progress core and its collaborators.

Repositories translate ORM rows into these records so the transition engine,
bulk orchestrator and notification intent generator can run against any
storage implementation, including the in-memory fakes used in tests.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from order_tracker.services.notifications.enums import (
    NotificationChannel,
    NotificationQueueStatus,
)
from order_tracker.services.progress.enums import StageStatus
from order_tracker.services.progress.exceptions import InvalidStatusError


@dataclass(frozen=True)
class StageRecord:
    """Production stage as seen by the core."""

    id: int
    name: str
    display_name: str
    sort_order: int
    description: Optional[str] = None
    icon_name: Optional[str] = None


@dataclass
class ProgressRecord:
    """One progress ledger row for an (order, stage) pair."""

    order_id: uuid.UUID
    stage_id: int
    status: StageStatus = StageStatus.NOT_STARTED
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    estimated_start_date: Optional[date] = None
    estimated_end_date: Optional[date] = None
    admin_notes: Optional[str] = None
    id: Optional[uuid.UUID] = None

    @classmethod
    def not_started(cls, order_id: uuid.UUID, stage_id: int) -> "ProgressRecord":
        """Virtual row for a pair that has never been written."""
        return cls(order_id=order_id, stage_id=stage_id)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def copy(self, **changes: Any) -> "ProgressRecord":
        return replace(self, **changes)


@dataclass(frozen=True)
class NotificationPreferenceRecord:
    """Channels a customer opted into."""

    sms_enabled: bool = False
    email_enabled: bool = False


@dataclass(frozen=True)
class OrderContact:
    """Order identity and contact details needed to notify a customer."""

    id: uuid.UUID
    order_number: str
    customer_name: str = ""
    customer_email: Optional[str] = None
    customer_phone_normalized: Optional[str] = None
    preference: Optional[NotificationPreferenceRecord] = None

    @property
    def first_name(self) -> str:
        parts = (self.customer_name or "").split()
        return parts[0] if parts else ""


@dataclass(frozen=True)
class NotificationDraft:
    """Notification queue item prepared for insertion."""

    order_id: uuid.UUID
    stage_id: int
    channel: NotificationChannel
    recipient: str
    message_body: str
    batch_id: uuid.UUID
    status: NotificationQueueStatus = NotificationQueueStatus.PENDING_REVIEW


@dataclass
class QueuedNotification:
    """Stored notification queue item with its order and stage labels."""

    id: uuid.UUID
    order_id: uuid.UUID
    stage_id: int
    channel: NotificationChannel
    recipient: str
    message_body: str
    status: NotificationQueueStatus
    batch_id: uuid.UUID
    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    stage_display_name: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProgressTransition:
    """
    Requested status change for one stage of one order.

    ``status`` accepts a StageStatus or its string value and is normalised on
    construction; an unknown value raises InvalidStatusError. When
    ``overwrite_details`` is set the estimated dates and admin notes replace
    the stored ones (including clearing them with None); otherwise the stored
    details are kept.
    """

    stage_id: int
    status: Union[StageStatus, str]
    estimated_start_date: Optional[date] = None
    estimated_end_date: Optional[date] = None
    admin_notes: Optional[str] = None
    overwrite_details: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.status, StageStatus):
            return
        try:
            status = StageStatus.from_string(self.status)
        except ValueError as e:
            raise InvalidStatusError(
                str(e),
                status=self.status,
                valid_statuses=[s.value for s in StageStatus],
            ) from e
        object.__setattr__(self, "status", status)


@dataclass
class TransitionResult:
    """Outcome of applying a ProgressTransition."""

    previous_status: StageStatus
    record: ProgressRecord
    cascaded_stage_ids: List[int] = field(default_factory=list)
    cascade_failures: List[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """True when the stored status differs from the pre-call status."""
        return self.record.status != self.previous_status


@dataclass
class BulkRowError:
    """Why one order of a bulk request was skipped."""

    order_id: uuid.UUID
    order_number: Optional[str]
    reason: str


@dataclass
class BulkUpdateResult:
    """Aggregate outcome of a bulk progress update."""

    batch_id: uuid.UUID
    updated: int = 0
    skipped: int = 0
    errors: List[BulkRowError] = field(default_factory=list)
    notifications_queued: int = 0

    def skip(
        self,
        order_id: uuid.UUID,
        order_number: Optional[str],
        reason: str,
    ) -> None:
        self.skipped += 1
        self.errors.append(
            BulkRowError(order_id=order_id, order_number=order_number, reason=reason)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": [
                {
                    "order_id": str(error.order_id),
                    "order_number": error.order_number,
                    "reason": error.reason,
                }
                for error in self.errors
            ],
            "batch_id": str(self.batch_id),
            "notifications_queued": self.notifications_queued,
        }

"""
Notification queue database model.

Stage changes do not message customers directly. They queue one draft per
enabled channel in ``pending_review``; an admin reviews, edits and finally
sends them. Drafts queued by the same operation share a ``batch_id``.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from order_tracker.database.base import Base, CreatedAtMixin, UUIDMixin
from order_tracker.services.notifications.enums import (
    NotificationChannel,
    NotificationQueueStatus,
)

if TYPE_CHECKING:
    from order_tracker.database.models.order import Order
    from order_tracker.database.models.stage import Stage


class NotificationQueueItem(Base, UUIDMixin, CreatedAtMixin):
    """
    Customer notification awaiting review or delivery.

    Attributes:
        id: Unique queue item identifier (UUID)
        order_id: Order the message is about
        stage_id: Stage the order moved to
        channel: sms or email
        recipient: Phone number (E.164) or e-mail address
        message_body: Editable message text
        status: pending_review, approved, sent or failed
        batch_id: Identifier shared by items queued in one operation
        reviewed_at: When an admin approved the item
        sent_at: When a transport accepted the item
        error_message: Last delivery error
    """

    __tablename__ = "notification_queue"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Order the notification is about",
    )

    stage_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("stages.id"),
        nullable=False,
        comment="Stage the order moved to",
    )

    channel: Mapped[NotificationChannel] = mapped_column(
        SQLEnum(
            NotificationChannel,
            name="notification_channel",
            native_enum=False,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        comment="Delivery channel",
    )

    recipient: Mapped[str] = mapped_column(
        String(254),
        nullable=False,
        comment="Phone number or e-mail address",
    )

    message_body: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Message text shown to the customer",
    )

    status: Mapped[NotificationQueueStatus] = mapped_column(
        SQLEnum(
            NotificationQueueStatus,
            name="notification_queue_status",
            native_enum=False,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=NotificationQueueStatus.PENDING_REVIEW,
        server_default=NotificationQueueStatus.PENDING_REVIEW.value,
        comment="Review and delivery status",
    )

    batch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
        comment="Shared by items queued in one operation",
    )

    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When an admin approved the item",
    )

    sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the transport accepted the item",
    )

    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Last delivery error",
    )

    # Relationships
    order: Mapped["Order"] = relationship(
        "Order",
        back_populates="notifications",
        lazy="joined",
    )
    stage: Mapped["Stage"] = relationship("Stage", lazy="joined")

    __table_args__ = (
        Index("ix_notification_queue_status", "status"),
        Index(
            "ix_notification_queue_status_created",
            "status",
            "created_at",
        ),
        {"comment": "Customer notifications awaiting review and delivery"},
    )

"""
Order and notification preference database models.

An order is the aggregate root of the tracker: it owns one progress row per
production stage, an optional notification preference and the notifications
queued for it. Deleting an order cascades to all of them.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from order_tracker.database.base import Base, BaseModel

if TYPE_CHECKING:
    from order_tracker.database.models.notification import NotificationQueueItem
    from order_tracker.database.models.progress import OrderProgress


class Order(BaseModel):
    """
    Customer order for presale or custom-manufactured goods.

    Attributes:
        id: Unique order identifier (UUID)
        order_number: Human-readable order number (unique)
        customer_name: Full customer name
        customer_email: Customer e-mail address
        customer_phone: Phone number as entered
        customer_phone_normalized: Phone number in E.164 format
        items_description: Free-text description of ordered items
        quantity: Number of units ordered
        carrier: Shipping carrier code
        tracking_number: Carrier tracking number
        is_cancelled: Cancellation flag
        is_delayed: Delay flag shown to customers
    """

    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
        comment="Human-readable order number",
    )

    customer_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Full customer name",
    )

    customer_email: Mapped[Optional[str]] = mapped_column(
        String(254),
        nullable=True,
        comment="Customer e-mail address",
    )

    customer_phone: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Customer phone number as entered",
    )

    customer_phone_normalized: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        index=True,
        comment="Customer phone number in E.164 format",
    )

    items_description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Description of ordered items",
    )

    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Number of units ordered",
    )

    carrier: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Shipping carrier (fedex, ups, usps, dhl)",
    )

    tracking_number: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Carrier tracking number",
    )

    is_cancelled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Order cancelled flag",
    )

    is_delayed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Order delayed flag",
    )

    # Relationships
    progress: Mapped[List["OrderProgress"]] = relationship(
        "OrderProgress",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    notification_preference: Mapped[Optional["NotificationPreference"]] = relationship(
        "NotificationPreference",
        back_populates="order",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    notifications: Mapped[List["NotificationQueueItem"]] = relationship(
        "NotificationQueueItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(
            "quantity >= 1",
            name="ck_orders_quantity_positive",
        ),
        Index(
            "ix_orders_is_delayed",
            "is_delayed",
            postgresql_where="is_delayed = TRUE",
        ),
        {"comment": "Customer orders tracked through production"},
    )

    @property
    def customer_first_name(self) -> str:
        """First word of the customer name."""
        parts = (self.customer_name or "").split()
        return parts[0] if parts else ""


class NotificationPreference(Base):
    """
    Customer opt-in for stage change notifications.

    One row per order. A missing row means the customer never opted in.
    """

    __tablename__ = "notification_preferences"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        primary_key=True,
        comment="Order the preference belongs to",
    )

    sms_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Send SMS notifications",
    )

    email_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Send e-mail notifications",
    )

    opted_in_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the customer opted in",
    )

    order: Mapped["Order"] = relationship(
        "Order",
        back_populates="notification_preference",
    )

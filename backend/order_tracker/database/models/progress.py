"""
Order progress ledger model.

One row per (order, stage) pair records where the order stands in that stage.
Rows are only mutated through the progress transition engine.
"""

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from order_tracker.database.base import Base, UUIDMixin
from order_tracker.services.progress.enums import StageStatus

if TYPE_CHECKING:
    from order_tracker.database.models.order import Order
    from order_tracker.database.models.stage import Stage


class OrderProgress(Base, UUIDMixin):
    """
    Status of one stage for one order.

    Attributes:
        id: Unique progress row identifier (UUID)
        order_id: Owning order
        stage_id: Stage this row tracks
        status: not_started, in_progress or completed
        started_at: First time the stage was started or completed
        completed_at: Completion time; set exactly when status is completed
        estimated_start_date: Planned start date
        estimated_end_date: Planned end date
        admin_notes: Internal notes
    """

    __tablename__ = "order_progress"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning order",
    )

    stage_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("stages.id"),
        nullable=False,
        comment="Tracked stage",
    )

    status: Mapped[StageStatus] = mapped_column(
        SQLEnum(
            StageStatus,
            name="stage_status",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=StageStatus.NOT_STARTED,
        comment="Stage status",
    )

    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When work on the stage first started",
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the stage was completed; immutable once set",
    )

    estimated_start_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        comment="Planned start date",
    )

    estimated_end_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        comment="Planned end date",
    )

    admin_notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Internal admin notes",
    )

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="progress")
    stage: Mapped["Stage"] = relationship("Stage", lazy="joined")

    __table_args__ = (
        UniqueConstraint(
            "order_id",
            "stage_id",
            name="uq_order_progress_order_stage",
        ),
        Index("ix_order_progress_status", "status"),
        CheckConstraint(
            "(status = 'completed') = (completed_at IS NOT NULL)",
            name="ck_order_progress_completed_at_matches_status",
        ),
        {"comment": "Per-order, per-stage progress ledger"},
    )

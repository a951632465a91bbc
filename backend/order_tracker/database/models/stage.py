"""
Production stage catalog model.

Stages form a fixed, admin-configured pipeline. ``sort_order`` is unique and
is the only source of truth for which stage comes before another.
"""

from typing import Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from order_tracker.database.base import Base


class Stage(Base):
    """
    Named production stage with display metadata.

    Attributes:
        id: Serial stage identifier
        name: Unique machine key (e.g. ``quality_check``)
        display_name: Label shown to customers and admins
        description: Customer-facing explanation of the stage
        sort_order: Unique pipeline position
        icon_name: Icon identifier used by the UI
    """

    __tablename__ = "stages"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        comment="Unique machine key",
    )

    display_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Human readable stage name",
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Customer facing stage description",
    )

    sort_order: Mapped[int] = mapped_column(
        Integer,
        unique=True,
        nullable=False,
        comment="Pipeline position; lower runs earlier",
    )

    icon_name: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="UI icon identifier",
    )

    __table_args__ = ({"comment": "Ordered production pipeline stages"},)

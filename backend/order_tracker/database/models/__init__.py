"""
Database models package initialization.

Models are imported here so they register with the Base metadata for Alembic
and for relationship resolution by name.
"""

from order_tracker.database.base import (
    Base,
    BaseModel,
    CreatedAtMixin,
    TimestampMixin,
    UUIDMixin,
)
from order_tracker.database.models.notification import NotificationQueueItem
from order_tracker.database.models.order import NotificationPreference, Order
from order_tracker.database.models.progress import OrderProgress
from order_tracker.database.models.stage import Stage

__all__ = [
    "Base",
    "BaseModel",
    "CreatedAtMixin",
    "TimestampMixin",
    "UUIDMixin",
    "NotificationPreference",
    "NotificationQueueItem",
    "Order",
    "OrderProgress",
    "Stage",
]

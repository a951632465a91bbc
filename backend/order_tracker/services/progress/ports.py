"""Collaborator protocols consumed by the progress core.

The transition engine, bulk orchestrator and notification intent generator
depend only on these protocols. SQLAlchemy repositories implement them in
production; tests substitute in-memory fakes.
"""

from __future__ import annotations

import uuid
from typing import Optional, Protocol, Sequence

from order_tracker.services.progress.records import (
    NotificationDraft,
    OrderContact,
    ProgressRecord,
    StageRecord,
)


class StageCatalog(Protocol):
    """Read access to the ordered production stages."""

    async def get_stage(self, stage_id: int) -> Optional[StageRecord]:
        """Return the stage or None when it does not exist."""

    async def list_stages(self) -> list[StageRecord]:
        """Return all stages ordered by sort_order."""

    async def list_stages_before(self, sort_order: int) -> list[StageRecord]:
        """Return stages with a lower sort_order, ordered by sort_order."""


class ProgressLedger(Protocol):
    """Storage for per-order, per-stage progress rows.

    Implementations raise StorageError on backend failure.
    """

    async def get_progress(
        self, order_id: uuid.UUID, stage_id: int
    ) -> Optional[ProgressRecord]:
        """Return the row for the pair or None when never written."""

    async def list_progress(
        self,
        order_ids: Sequence[uuid.UUID],
        stage_id: Optional[int] = None,
    ) -> list[ProgressRecord]:
        """Return rows for the orders, optionally limited to one stage."""

    async def upsert_progress(self, record: ProgressRecord) -> ProgressRecord:
        """Insert or update by (order_id, stage_id) and return the stored row."""

    async def insert_missing_progress(
        self, records: Sequence[ProgressRecord]
    ) -> int:
        """Insert rows whose pair does not exist yet; return how many."""


class OrderLookup(Protocol):
    """Read access to orders and their notification preferences."""

    async def get_orders_by_ids(
        self, order_ids: Sequence[uuid.UUID]
    ) -> list[OrderContact]:
        """Return the orders that exist; unknown ids are omitted."""

    async def get_order(self, order_id: uuid.UUID) -> Optional[OrderContact]:
        """Return the order or None."""


class NotificationQueueWriter(Protocol):
    """Write access to the notification queue."""

    async def insert_notifications(
        self, drafts: Sequence[NotificationDraft]
    ) -> int:
        """Insert all drafts in one write; raise NotificationQueueError on failure."""

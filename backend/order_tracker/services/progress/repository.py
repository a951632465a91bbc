"""
Progress data access repositories.

SQLAlchemy implementations of the StageCatalog, ProgressLedger and
OrderLookup protocols. Every write runs inside a savepoint so a failed row
rolls back on its own and the surrounding request transaction stays usable
for the remaining rows of a bulk update.
"""

import uuid
from typing import Any, List, Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from order_tracker.core.logging import get_logger
from order_tracker.database.models.order import Order
from order_tracker.database.models.progress import OrderProgress
from order_tracker.database.models.stage import Stage
from order_tracker.services.progress.enums import StageStatus
from order_tracker.services.progress.exceptions import StorageError
from order_tracker.services.progress.records import (
    NotificationPreferenceRecord,
    OrderContact,
    ProgressRecord,
    StageRecord,
)

logger = get_logger(__name__)

PROGRESS_UNIQUE_CONSTRAINT = "uq_order_progress_order_stage"

_UPDATABLE_COLUMNS = (
    "status",
    "started_at",
    "completed_at",
    "estimated_start_date",
    "estimated_end_date",
    "admin_notes",
)


def stage_to_record(stage: Stage) -> StageRecord:
    return StageRecord(
        id=stage.id,
        name=stage.name,
        display_name=stage.display_name,
        description=stage.description,
        sort_order=stage.sort_order,
        icon_name=stage.icon_name,
    )


def progress_to_record(row: Any) -> ProgressRecord:
    """Map an OrderProgress instance or a RETURNING mapping to a record."""
    get = row.get if isinstance(row, Mapping) else lambda key: getattr(row, key)
    status = get("status")
    return ProgressRecord(
        id=get("id"),
        order_id=get("order_id"),
        stage_id=get("stage_id"),
        status=status if isinstance(status, StageStatus) else StageStatus(status),
        started_at=get("started_at"),
        completed_at=get("completed_at"),
        estimated_start_date=get("estimated_start_date"),
        estimated_end_date=get("estimated_end_date"),
        admin_notes=get("admin_notes"),
    )


def order_to_contact(order: Order) -> OrderContact:
    preference = None
    if order.notification_preference is not None:
        preference = NotificationPreferenceRecord(
            sms_enabled=order.notification_preference.sms_enabled,
            email_enabled=order.notification_preference.email_enabled,
        )
    return OrderContact(
        id=order.id,
        order_number=order.order_number,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        customer_phone_normalized=order.customer_phone_normalized,
        preference=preference,
    )


class StageRepository:
    """Stage catalog backed by the ``stages`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_stage(self, stage_id: int) -> Optional[StageRecord]:
        try:
            stage = await self.session.get(Stage, stage_id)
        except SQLAlchemyError as e:
            logger.error("Failed to load stage", stage_id=stage_id, error=str(e))
            raise StorageError("Failed to load stage", stage_id=stage_id) from e
        return stage_to_record(stage) if stage is not None else None

    async def list_stages(self) -> List[StageRecord]:
        return await self._list(select(Stage).order_by(Stage.sort_order))

    async def list_stages_before(self, sort_order: int) -> List[StageRecord]:
        stmt = (
            select(Stage)
            .where(Stage.sort_order < sort_order)
            .order_by(Stage.sort_order)
        )
        return await self._list(stmt)

    async def _list(self, stmt) -> List[StageRecord]:
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Failed to list stages", error=str(e))
            raise StorageError("Failed to list stages") from e
        return [stage_to_record(stage) for stage in result.scalars().all()]


class ProgressRepository:
    """
    Progress ledger backed by the ``order_progress`` table.

    Rows are written with ``INSERT ... ON CONFLICT`` on the
    (order_id, stage_id) unique constraint.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize progress repository.

        Args:
            session: Async database session
        """
        self.session = session

    async def get_progress(
        self, order_id: uuid.UUID, stage_id: int
    ) -> Optional[ProgressRecord]:
        stmt = select(OrderProgress).where(
            OrderProgress.order_id == order_id,
            OrderProgress.stage_id == stage_id,
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to load progress",
                order_id=str(order_id),
                stage_id=stage_id,
                error=str(e),
            )
            raise StorageError(
                "Failed to load progress",
                order_id=str(order_id),
                stage_id=stage_id,
            ) from e

        row = result.scalar_one_or_none()
        return progress_to_record(row) if row is not None else None

    async def list_progress(
        self,
        order_ids: Sequence[uuid.UUID],
        stage_id: Optional[int] = None,
    ) -> List[ProgressRecord]:
        if not order_ids:
            return []

        stmt = select(OrderProgress).where(OrderProgress.order_id.in_(list(order_ids)))
        if stage_id is not None:
            stmt = stmt.where(OrderProgress.stage_id == stage_id)

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to list progress",
                order_count=len(order_ids),
                stage_id=stage_id,
                error=str(e),
            )
            raise StorageError(
                "Failed to list progress",
                order_count=len(order_ids),
                stage_id=stage_id,
            ) from e

        return [progress_to_record(row) for row in result.scalars().all()]

    async def upsert_progress(self, record: ProgressRecord) -> ProgressRecord:
        """
        Insert or update the row for the record's (order_id, stage_id).

        Returns:
            The stored row

        Raises:
            StorageError: If the write fails
        """
        values = {
            "id": record.id or uuid.uuid4(),
            "order_id": record.order_id,
            "stage_id": record.stage_id,
            "status": record.status,
            "started_at": record.started_at,
            "completed_at": record.completed_at,
            "estimated_start_date": record.estimated_start_date,
            "estimated_end_date": record.estimated_end_date,
            "admin_notes": record.admin_notes,
        }
        stmt = pg_insert(OrderProgress).values(**values)
        stmt = stmt.on_conflict_do_update(
            constraint=PROGRESS_UNIQUE_CONSTRAINT,
            set_={column: stmt.excluded[column] for column in _UPDATABLE_COLUMNS},
        ).returning(*OrderProgress.__table__.columns)

        try:
            async with self.session.begin_nested():
                result = await self.session.execute(stmt)
                row = result.mappings().one()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to upsert progress",
                order_id=str(record.order_id),
                stage_id=record.stage_id,
                status=record.status.value,
                error=str(e),
            )
            raise StorageError(
                "Failed to update progress",
                order_id=str(record.order_id),
                stage_id=record.stage_id,
            ) from e

        return progress_to_record(row)

    async def insert_missing_progress(
        self, records: Sequence[ProgressRecord]
    ) -> int:
        if not records:
            return 0

        stmt = (
            pg_insert(OrderProgress)
            .values(
                [
                    {
                        "id": record.id or uuid.uuid4(),
                        "order_id": record.order_id,
                        "stage_id": record.stage_id,
                        "status": record.status,
                        "started_at": record.started_at,
                        "completed_at": record.completed_at,
                    }
                    for record in records
                ]
            )
            .on_conflict_do_nothing(constraint=PROGRESS_UNIQUE_CONSTRAINT)
            .returning(OrderProgress.id)
        )

        try:
            async with self.session.begin_nested():
                result = await self.session.execute(stmt)
                inserted = len(result.all())
        except SQLAlchemyError as e:
            logger.error(
                "Failed to initialize progress",
                order_id=str(records[0].order_id),
                error=str(e),
            )
            raise StorageError(
                "Failed to initialize progress",
                order_id=str(records[0].order_id),
            ) from e

        return inserted


class OrderRepository:
    """Order lookup with notification preferences eagerly loaded."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_orders_by_ids(
        self, order_ids: Sequence[uuid.UUID]
    ) -> List[OrderContact]:
        if not order_ids:
            return []

        stmt = (
            select(Order)
            .options(selectinload(Order.notification_preference))
            .where(Order.id.in_(list(order_ids)))
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to load orders",
                order_count=len(order_ids),
                error=str(e),
            )
            raise StorageError("Failed to load orders", order_count=len(order_ids)) from e

        return [order_to_contact(order) for order in result.scalars().all()]

    async def get_order(self, order_id: uuid.UUID) -> Optional[OrderContact]:
        orders = await self.get_orders_by_ids([order_id])
        return orders[0] if orders else None

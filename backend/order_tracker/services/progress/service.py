"""
Order progress service.

Entry point used by the API layer. Wires the transition engine, the bulk
orchestrator and the notification intent generator over injected storage
collaborators and exposes the single-order, bulk, timeline, initialization
and stage listing operations.
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from order_tracker.core.config import Settings, get_settings
from order_tracker.core.logging import get_logger
from order_tracker.services.notifications.intents import NotificationIntentGenerator
from order_tracker.services.notifications.repository import NotificationQueueRepository
from order_tracker.services.progress.bulk import BulkProgressOrchestrator
from order_tracker.services.progress.engine import ProgressTransitionEngine
from order_tracker.services.progress.enums import StageStatus
from order_tracker.services.progress.exceptions import (
    OrderNotFoundError,
    ProgressValidationError,
)
from order_tracker.services.progress.ports import (
    OrderLookup,
    ProgressLedger,
    StageCatalog,
)
from order_tracker.services.progress.records import (
    BulkUpdateResult,
    OrderContact,
    ProgressRecord,
    ProgressTransition,
    StageRecord,
    TransitionResult,
)
from order_tracker.services.progress.repository import (
    OrderRepository,
    ProgressRepository,
    StageRepository,
)

logger = get_logger(__name__)


@dataclass
class SingleUpdateResult:
    """Outcome of a single-order progress update."""

    transition: TransitionResult
    batch_id: Optional[uuid.UUID] = None
    notifications_queued: int = 0


@dataclass
class StageProgress:
    """One timeline entry: a stage and the order's row for it."""

    stage: StageRecord
    progress: ProgressRecord
    recorded: bool


class ProgressService:
    """
    Service for order progress operations.

    Single-order updates surface every failure to the caller; bulk updates
    isolate failures per order. Notification queuing never fails an update.
    """

    def __init__(
        self,
        catalog: StageCatalog,
        ledger: ProgressLedger,
        orders: OrderLookup,
        notifier: NotificationIntentGenerator,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        batch_id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ):
        """
        Initialize progress service.

        Args:
            catalog: Stage catalog
            ledger: Progress ledger storage
            orders: Order lookup
            notifier: Notification intent generator
            settings: Application settings
            clock: Callable returning the current time (UTC)
            batch_id_factory: Source of notification batch ids
        """
        self.settings = settings or get_settings()
        self.catalog = catalog
        self.ledger = ledger
        self.orders = orders
        self.notifier = notifier
        self._batch_id_factory = batch_id_factory
        self.engine = ProgressTransitionEngine(catalog, ledger, clock=clock)
        self.bulk = BulkProgressOrchestrator(
            engine=self.engine,
            ledger=ledger,
            orders=orders,
            notifier=notifier,
            max_orders=self.settings.bulk_operation_max,
            notifications_enabled=self.settings.notify_on_stage_change,
            batch_id_factory=batch_id_factory,
        )

    async def _require_order(self, order_id: uuid.UUID) -> OrderContact:
        order = await self.orders.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(
                f"Order {order_id} not found",
                order_id=str(order_id),
            )
        return order

    async def update_single_order_progress(
        self,
        order_id: uuid.UUID,
        stage_id: int,
        status: Union[StageStatus, str],
        estimated_start_date: Optional[date] = None,
        estimated_end_date: Optional[date] = None,
        admin_notes: Optional[str] = None,
        queue_notification: bool = False,
    ) -> SingleUpdateResult:
        """
        Update one stage of one order.

        Estimated dates and notes replace the stored values.

        Raises:
            ProgressValidationError: If notes are too long, the status or
                stage is invalid
            OrderNotFoundError: If the order does not exist
            ImmutableStateError: If the stage is completed and the new
                status is not completed
            StorageError: If the row cannot be written
        """
        if admin_notes is not None and len(admin_notes) > self.settings.admin_notes_max_length:
            raise ProgressValidationError(
                f"Admin notes cannot exceed {self.settings.admin_notes_max_length} characters",
                order_id=str(order_id),
                length=len(admin_notes),
            )

        transition = ProgressTransition(
            stage_id=stage_id,
            status=status,
            estimated_start_date=estimated_start_date,
            estimated_end_date=estimated_end_date,
            admin_notes=admin_notes or None,
            overwrite_details=True,
        )
        stage = await self.engine.get_stage(stage_id)
        order = await self._require_order(order_id)

        outcome = await self.engine.apply_transition(order.id, transition, stage=stage)
        result = SingleUpdateResult(transition=outcome)

        if (
            queue_notification
            and outcome.changed
            and self.settings.notify_on_stage_change
        ):
            result.batch_id = self._batch_id_factory()
            result.notifications_queued = await self.notifier.queue_notifications(
                order, stage, result.batch_id
            )

        return result

    async def bulk_update_progress(
        self,
        order_ids: Sequence[uuid.UUID],
        stage_id: int,
        status: Union[StageStatus, str],
        queue_notification: bool = False,
    ) -> BulkUpdateResult:
        return await self.bulk.bulk_apply(
            order_ids,
            stage_id,
            status,
            queue_notification=queue_notification,
        )

    async def get_order_progress(self, order_id: uuid.UUID) -> List[StageProgress]:
        """
        Return the order's timeline in stage order.

        Stages without a stored row are reported as not_started.

        Raises:
            OrderNotFoundError: If the order does not exist
        """
        await self._require_order(order_id)
        stages = await self.catalog.list_stages()
        rows = {row.stage_id: row for row in await self.ledger.list_progress([order_id])}
        return [
            StageProgress(
                stage=stage,
                progress=rows.get(stage.id) or ProgressRecord.not_started(order_id, stage.id),
                recorded=stage.id in rows,
            )
            for stage in stages
        ]

    async def initialize_order_progress(
        self,
        order_id: uuid.UUID,
        precomplete_first_stage: bool = False,
    ) -> int:
        await self._require_order(order_id)
        return await self.engine.initialize_order(order_id, precomplete_first_stage)

    async def list_stages(self) -> List[StageRecord]:
        return await self.catalog.list_stages()


def get_progress_service(
    session: AsyncSession,
    settings: Optional[Settings] = None,
) -> ProgressService:
    """
    Factory function to create a progress service bound to a session.

    Args:
        session: Async database session
        settings: Application settings

    Returns:
        Configured ProgressService instance
    """
    return ProgressService(
        catalog=StageRepository(session),
        ledger=ProgressRepository(session),
        orders=OrderRepository(session),
        notifier=NotificationIntentGenerator(NotificationQueueRepository(session)),
        settings=settings,
    )

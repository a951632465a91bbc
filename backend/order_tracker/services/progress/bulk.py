"""
Bulk progress update orchestrator.

Applies one stage status change to many orders. Request-level problems (no
ids, too many ids, unknown stage, bad status) reject the whole call before
anything is written. After that every order is isolated: a failure on one row
is reported in the result and the batch carries on.
"""

import uuid
from typing import Callable, Dict, Optional, Sequence, Union

from order_tracker.core.logging import get_logger, log_performance
from order_tracker.services.notifications.intents import NotificationIntentGenerator
from order_tracker.services.progress.engine import ProgressTransitionEngine
from order_tracker.services.progress.enums import StageStatus
from order_tracker.services.progress.exceptions import (
    BulkLimitExceededError,
    ImmutableStateError,
    StorageError,
)
from order_tracker.services.progress.ports import OrderLookup, ProgressLedger
from order_tracker.services.progress.records import (
    BulkUpdateResult,
    OrderContact,
    ProgressRecord,
    ProgressTransition,
    StageRecord,
)

logger = get_logger(__name__)

REASON_ORDER_NOT_FOUND = "Order not found"
REASON_ALREADY_COMPLETED = "Stage already completed"
REASON_DATABASE_ERROR = "Database error"
REASON_UNEXPECTED_ERROR = "Unexpected error"


class BulkProgressOrchestrator:
    """Drives the transition engine across a set of orders."""

    def __init__(
        self,
        engine: ProgressTransitionEngine,
        ledger: ProgressLedger,
        orders: OrderLookup,
        notifier: NotificationIntentGenerator,
        max_orders: int = 100,
        notifications_enabled: bool = True,
        batch_id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ):
        """
        Initialize the orchestrator.

        Args:
            engine: Transition engine applying each row
            ledger: Progress ledger, read once up front
            orders: Order lookup for order numbers and preferences
            notifier: Notification intent generator
            max_orders: Largest accepted number of order ids
            notifications_enabled: Global switch for notification queuing
            batch_id_factory: Source of the per-call batch id
        """
        self.engine = engine
        self.ledger = ledger
        self.orders = orders
        self.notifier = notifier
        self.max_orders = max_orders
        self.notifications_enabled = notifications_enabled
        self._batch_id_factory = batch_id_factory

    def _check_size(self, order_ids: Sequence[uuid.UUID]) -> None:
        if not order_ids:
            raise BulkLimitExceededError(
                "No order ids provided",
                order_count=0,
                max_orders=self.max_orders,
            )
        if len(order_ids) > self.max_orders:
            raise BulkLimitExceededError(
                f"Cannot update more than {self.max_orders} orders at once",
                order_count=len(order_ids),
                max_orders=self.max_orders,
            )

    async def bulk_apply(
        self,
        order_ids: Sequence[uuid.UUID],
        stage_id: int,
        status: Union[StageStatus, str],
        queue_notification: bool = False,
    ) -> BulkUpdateResult:
        """
        Apply a stage status to every listed order.

        Args:
            order_ids: Orders to update; duplicates are processed once
            stage_id: Stage to update
            status: New status for the stage
            queue_notification: Queue review drafts for genuine changes

        Returns:
            BulkUpdateResult with counts, per-row errors and the batch id

        Raises:
            BulkLimitExceededError: If the id list is empty or too long
            InvalidStatusError: If the status is not a stage status
            InvalidStageError: If the stage does not exist
            StorageError: If the orders or existing rows cannot be loaded
        """
        unique_ids = list(dict.fromkeys(order_ids))
        self._check_size(unique_ids)
        transition = ProgressTransition(stage_id=stage_id, status=status)
        stage = await self.engine.get_stage(stage_id)

        result = BulkUpdateResult(batch_id=self._batch_id_factory())
        should_queue = queue_notification and self.notifications_enabled

        with log_performance(
            logger,
            "bulk_progress_update",
            order_count=len(unique_ids),
            stage_id=stage.id,
            status=transition.status.value,
            batch_id=str(result.batch_id),
        ):
            found = await self.orders.get_orders_by_ids(unique_ids)
            orders: Dict[uuid.UUID, OrderContact] = {o.id: o for o in found}
            rows = await self.ledger.list_progress(unique_ids, stage_id=stage.id)
            existing: Dict[uuid.UUID, ProgressRecord] = {r.order_id: r for r in rows}

            for order_id in unique_ids:
                order = orders.get(order_id)
                if order is None:
                    # Reported rather than dropped so the caller sees every id.
                    result.skip(order_id, None, REASON_ORDER_NOT_FOUND)
                    continue

                row = existing.get(order_id)
                if row is not None and row.is_completed:
                    result.skip(order_id, order.order_number, REASON_ALREADY_COMPLETED)
                    continue

                reason = await self._apply_one(order, transition, stage, result, should_queue)
                if reason is not None:
                    result.skip(order_id, order.order_number, reason)

        logger.info(
            "Bulk progress update finished",
            stage_id=stage.id,
            status=transition.status.value,
            batch_id=str(result.batch_id),
            updated=result.updated,
            skipped=result.skipped,
            notifications_queued=result.notifications_queued,
        )
        return result

    async def _apply_one(
        self,
        order: OrderContact,
        transition: ProgressTransition,
        stage: StageRecord,
        result: BulkUpdateResult,
        should_queue: bool,
    ) -> Optional[str]:
        """Apply the transition to one order; return a skip reason on failure."""
        try:
            outcome = await self.engine.apply_transition(order.id, transition, stage=stage)
        except ImmutableStateError:
            return REASON_ALREADY_COMPLETED
        except StorageError as e:
            logger.warning(
                "Bulk progress row failed",
                order_id=str(order.id),
                order_number=order.order_number,
                stage_id=stage.id,
                error=str(e),
            )
            return REASON_DATABASE_ERROR
        except Exception as e:
            logger.error(
                "Bulk progress row failed unexpectedly",
                order_id=str(order.id),
                order_number=order.order_number,
                stage_id=stage.id,
                error=str(e),
                exc_info=True,
            )
            return REASON_UNEXPECTED_ERROR

        result.updated += 1
        if should_queue and outcome.changed:
            result.notifications_queued += await self.notifier.queue_notifications(
                order, stage, result.batch_id
            )
        return None

"""
Test suite for BulkProgressOrchestrator.

Tests cover request level rejection, per-order isolation of skips and
failures, and notification queuing under a shared batch id.
"""

import uuid
from unittest.mock import AsyncMock

import pytest

from order_tracker.services.notifications.enums import (
    NotificationChannel,
    NotificationQueueStatus,
)
from order_tracker.services.progress.bulk import (
    REASON_ALREADY_COMPLETED,
    REASON_DATABASE_ERROR,
    REASON_ORDER_NOT_FOUND,
    REASON_UNEXPECTED_ERROR,
    BulkProgressOrchestrator,
)
from order_tracker.services.progress.enums import StageStatus
from order_tracker.services.progress.exceptions import (
    BulkLimitExceededError,
    ImmutableStateError,
    InvalidStageError,
    InvalidStatusError,
)
from order_tracker.services.progress.records import ProgressRecord


BATCH_ID = uuid.UUID("00000000-0000-0000-0000-0000000000b1")


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def orchestrator(engine, ledger, orders, notifier) -> BulkProgressOrchestrator:
    """Orchestrator accepting up to three orders with a fixed batch id."""
    return BulkProgressOrchestrator(
        engine=engine,
        ledger=ledger,
        orders=orders,
        notifier=notifier,
        max_orders=3,
        batch_id_factory=lambda: BATCH_ID,
    )


def complete_stage(ledger, order_id, stage_id, clock):
    ledger.seed(
        ProgressRecord(
            order_id=order_id,
            stage_id=stage_id,
            status=StageStatus.COMPLETED,
            started_at=clock.now,
            completed_at=clock.now,
        )
    )


# ============================================================================
# Request Validation Tests
# ============================================================================


class TestRequestValidation:
    @pytest.mark.asyncio
    async def test_empty_order_ids(self, orchestrator):
        with pytest.raises(BulkLimitExceededError):
            await orchestrator.bulk_apply([], 2, "completed")

    @pytest.mark.asyncio
    async def test_too_many_order_ids(self, orchestrator, ledger):
        ids = [uuid.uuid4() for _ in range(4)]

        with pytest.raises(BulkLimitExceededError) as exc_info:
            await orchestrator.bulk_apply(ids, 2, "completed")

        assert exc_info.value.context == {"order_count": 4, "max_orders": 3}
        assert ledger.upsert_calls == []

    @pytest.mark.asyncio
    async def test_duplicates_count_once_against_limit(self, orchestrator, order_factory):
        order = order_factory()

        result = await orchestrator.bulk_apply([order.id] * 5, 2, "in_progress")

        assert result.updated == 1
        assert result.skipped == 0

    @pytest.mark.asyncio
    async def test_invalid_status(self, orchestrator, order_factory):
        with pytest.raises(InvalidStatusError):
            await orchestrator.bulk_apply([order_factory().id], 2, "shipped")

    @pytest.mark.asyncio
    async def test_unknown_stage(self, orchestrator, order_factory, ledger):
        with pytest.raises(InvalidStageError):
            await orchestrator.bulk_apply([order_factory().id], 42, "completed")

        assert ledger.upsert_calls == []


# ============================================================================
# Isolation Tests
# ============================================================================


class TestIsolation:
    @pytest.mark.asyncio
    async def test_already_completed_rows_are_skipped(
        self, orchestrator, order_factory, ledger, clock
    ):
        """Given N orders with M completed, M are skipped and N - M updated."""
        done_a = order_factory(order_number="PO-1")
        done_b = order_factory(order_number="PO-2")
        fresh = order_factory(order_number="PO-3")
        complete_stage(ledger, done_a.id, 2, clock)
        complete_stage(ledger, done_b.id, 2, clock)

        result = await orchestrator.bulk_apply(
            [done_a.id, done_b.id, fresh.id], 2, "completed"
        )

        assert result.updated == 1
        assert result.skipped == 2
        assert {e.order_number for e in result.errors} == {"PO-1", "PO-2"}
        assert all(e.reason == REASON_ALREADY_COMPLETED for e in result.errors)
        assert ledger.row(fresh.id, 1).status == StageStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_missing_order_is_reported(self, orchestrator, order_factory):
        """
        Unknown ids are counted as skipped with a reason rather than dropped
        silently, so the admin can see which selections did not match an order.
        """
        order = order_factory()
        missing = uuid.uuid4()

        result = await orchestrator.bulk_apply([missing, order.id], 3, "in_progress")

        assert result.updated == 1
        assert result.skipped == 1
        assert result.errors[0].order_id == missing
        assert result.errors[0].order_number is None
        assert result.errors[0].reason == REASON_ORDER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_storage_error_skips_only_that_order(
        self, orchestrator, order_factory, ledger
    ):
        broken = order_factory(order_number="PO-BROKEN")
        healthy = order_factory(order_number="PO-OK")
        ledger.fail_orders.add(broken.id)

        result = await orchestrator.bulk_apply([broken.id, healthy.id], 2, "completed")

        assert result.updated == 1
        assert result.skipped == 1
        assert result.errors[0].order_number == "PO-BROKEN"
        assert result.errors[0].reason == REASON_DATABASE_ERROR
        assert ledger.row(healthy.id, 2).status == StageStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_completed_between_read_and_write(
        self, orchestrator, order_factory, engine, monkeypatch
    ):
        order = order_factory()
        monkeypatch.setattr(
            engine,
            "apply_transition",
            AsyncMock(side_effect=ImmutableStateError("Cannot change status")),
        )

        result = await orchestrator.bulk_apply([order.id], 2, "in_progress")

        assert result.updated == 0
        assert result.errors[0].reason == REASON_ALREADY_COMPLETED

    @pytest.mark.asyncio
    async def test_unexpected_error_is_isolated(
        self, orchestrator, order_factory, engine, monkeypatch
    ):
        order = order_factory()
        monkeypatch.setattr(
            engine,
            "apply_transition",
            AsyncMock(side_effect=RuntimeError("boom")),
        )

        result = await orchestrator.bulk_apply([order.id], 2, "completed")

        assert result.skipped == 1
        assert result.errors[0].reason == REASON_UNEXPECTED_ERROR

    @pytest.mark.asyncio
    async def test_partial_cascade_failure_still_counts_as_updated(
        self, orchestrator, order_factory, ledger
    ):
        order = order_factory()
        ledger.fail_upserts_for.add((order.id, 1))

        result = await orchestrator.bulk_apply([order.id], 3, "completed")

        assert result.updated == 1
        assert result.skipped == 0


# ============================================================================
# Notification Tests
# ============================================================================


class TestNotifications:
    @pytest.mark.asyncio
    async def test_one_sms_for_the_changed_order(
        self, orchestrator, order_factory, ledger, queue, clock
    ):
        """O1 already completed, O2 opted into SMS: one pending sms draft for O2."""
        first = order_factory(order_number="PO-1", sms=True)
        second = order_factory(order_number="PO-2", sms=True)
        complete_stage(ledger, first.id, 2, clock)

        result = await orchestrator.bulk_apply(
            [first.id, second.id], 2, "completed", queue_notification=True
        )

        assert result.updated == 1
        assert result.skipped == 1
        assert result.notifications_queued == 1
        assert result.batch_id == BATCH_ID

        items = list(queue.items.values())
        assert len(items) == 1
        assert items[0].order_id == second.id
        assert items[0].channel == NotificationChannel.SMS
        assert items[0].status == NotificationQueueStatus.PENDING_REVIEW
        assert items[0].batch_id == BATCH_ID

    @pytest.mark.asyncio
    async def test_batch_id_shared_across_orders(self, orchestrator, order_factory, queue):
        ids = [order_factory(sms=True, email=True).id for _ in range(3)]

        result = await orchestrator.bulk_apply(ids, 1, "completed", queue_notification=True)

        assert result.notifications_queued == 6
        assert {item.batch_id for item in queue.items.values()} == {BATCH_ID}

    @pytest.mark.asyncio
    async def test_no_notifications_without_flag(self, orchestrator, order_factory, queue):
        order = order_factory(sms=True)

        result = await orchestrator.bulk_apply([order.id], 2, "completed")

        assert result.notifications_queued == 0
        assert queue.items == {}

    @pytest.mark.asyncio
    async def test_no_notifications_for_unchanged_status(
        self, orchestrator, order_factory, ledger, queue
    ):
        order = order_factory(sms=True)
        ledger.seed(
            ProgressRecord(order_id=order.id, stage_id=2, status=StageStatus.NOT_STARTED)
        )

        result = await orchestrator.bulk_apply(
            [order.id], 2, "not_started", queue_notification=True
        )

        assert result.updated == 1
        assert result.notifications_queued == 0
        assert queue.items == {}

    @pytest.mark.asyncio
    async def test_global_switch_disables_queuing(
        self, engine, ledger, orders, notifier, order_factory, queue
    ):
        orchestrator = BulkProgressOrchestrator(
            engine, ledger, orders, notifier, notifications_enabled=False
        )
        order = order_factory(sms=True)

        result = await orchestrator.bulk_apply(
            [order.id], 2, "completed", queue_notification=True
        )

        assert result.updated == 1
        assert result.notifications_queued == 0

    @pytest.mark.asyncio
    async def test_queue_failure_keeps_update(
        self, orchestrator, order_factory, ledger, queue
    ):
        order = order_factory(sms=True)
        queue.fail_inserts = True

        result = await orchestrator.bulk_apply(
            [order.id], 2, "completed", queue_notification=True
        )

        assert result.updated == 1
        assert result.notifications_queued == 0
        assert ledger.row(order.id, 2).status == StageStatus.COMPLETED

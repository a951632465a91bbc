"""
Pytest configuration and shared test fixtures.

This module provides in-memory fakes of the progress storage collaborators,
a controllable clock, preconfigured services and a FastAPI test client whose
admin token is signed with the test secret.
"""

import os

os.environ.setdefault("APP_ENVIRONMENT", "test")

import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Dict, Generator, List, Optional, Sequence, Set, Tuple

import pytest
from fastapi.testclient import TestClient

from order_tracker.api.rate_limit import limiter
from order_tracker.core.config import Settings
from order_tracker.core.security import create_access_token
from order_tracker.main import app
from order_tracker.services.notifications.enums import NotificationQueueStatus
from order_tracker.services.notifications.intents import NotificationIntentGenerator
from order_tracker.services.progress.engine import ProgressTransitionEngine
from order_tracker.services.progress.exceptions import (
    NotificationNotFoundError,
    NotificationQueueError,
    StorageError,
)
from order_tracker.services.progress.records import (
    NotificationDraft,
    NotificationPreferenceRecord,
    OrderContact,
    ProgressRecord,
    QueuedNotification,
    StageRecord,
)
from order_tracker.services.progress.service import ProgressService


# ============================================================================
# In-memory collaborators
# ============================================================================


class FakeClock:
    """Clock returning a fixed instant that tests can advance."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeStageCatalog:
    def __init__(self, stages: Sequence[StageRecord]):
        self.stages = sorted(stages, key=lambda s: s.sort_order)

    async def get_stage(self, stage_id: int) -> Optional[StageRecord]:
        return next((s for s in self.stages if s.id == stage_id), None)

    async def list_stages(self) -> List[StageRecord]:
        return list(self.stages)

    async def list_stages_before(self, sort_order: int) -> List[StageRecord]:
        return [s for s in self.stages if s.sort_order < sort_order]


class FakeProgressLedger:
    """
    Progress ledger keyed by (order_id, stage_id).

    ``fail_upserts_for`` makes writes for the listed pairs raise StorageError;
    ``upsert_calls`` records every attempted write.
    """

    def __init__(self):
        self.rows: Dict[Tuple[uuid.UUID, int], ProgressRecord] = {}
        self.fail_upserts_for: Set[Tuple[uuid.UUID, int]] = set()
        self.fail_orders: Set[uuid.UUID] = set()
        self.upsert_calls: List[ProgressRecord] = []

    def seed(self, record: ProgressRecord) -> ProgressRecord:
        stored = replace(record, id=record.id or uuid.uuid4())
        self.rows[(stored.order_id, stored.stage_id)] = stored
        return stored

    def row(self, order_id: uuid.UUID, stage_id: int) -> Optional[ProgressRecord]:
        return self.rows.get((order_id, stage_id))

    async def get_progress(
        self, order_id: uuid.UUID, stage_id: int
    ) -> Optional[ProgressRecord]:
        row = self.rows.get((order_id, stage_id))
        return replace(row) if row else None

    async def list_progress(
        self,
        order_ids: Sequence[uuid.UUID],
        stage_id: Optional[int] = None,
    ) -> List[ProgressRecord]:
        return [
            replace(row)
            for (order_id, row_stage_id), row in self.rows.items()
            if order_id in order_ids and (stage_id is None or row_stage_id == stage_id)
        ]

    async def upsert_progress(self, record: ProgressRecord) -> ProgressRecord:
        self.upsert_calls.append(record)
        key = (record.order_id, record.stage_id)
        if key in self.fail_upserts_for or record.order_id in self.fail_orders:
            raise StorageError("Failed to update progress", order_id=str(record.order_id))
        existing = self.rows.get(key)
        stored = replace(record, id=existing.id if existing else (record.id or uuid.uuid4()))
        self.rows[key] = stored
        return replace(stored)

    async def insert_missing_progress(self, records: Sequence[ProgressRecord]) -> int:
        created = 0
        for record in records:
            key = (record.order_id, record.stage_id)
            if key not in self.rows:
                self.rows[key] = replace(record, id=uuid.uuid4())
                created += 1
        return created


class FakeOrderLookup:
    def __init__(self, orders: Sequence[OrderContact] = ()):
        self.orders: Dict[uuid.UUID, OrderContact] = {o.id: o for o in orders}

    def add(self, order: OrderContact) -> OrderContact:
        self.orders[order.id] = order
        return order

    async def get_orders_by_ids(
        self, order_ids: Sequence[uuid.UUID]
    ) -> List[OrderContact]:
        return [self.orders[i] for i in order_ids if i in self.orders]

    async def get_order(self, order_id: uuid.UUID) -> Optional[OrderContact]:
        return self.orders.get(order_id)


class FakeNotificationQueue:
    """
    Notification queue used both as the intent writer and the review store.
    """

    def __init__(self, orders: Optional[FakeOrderLookup] = None):
        self.items: Dict[uuid.UUID, QueuedNotification] = {}
        self.orders = orders
        self.fail_inserts = False
        self.fail_marks_for: Set[uuid.UUID] = set()
        self.insert_calls = 0

    async def insert_notifications(self, drafts: Sequence[NotificationDraft]) -> int:
        self.insert_calls += 1
        if self.fail_inserts:
            raise NotificationQueueError("Failed to queue notifications")
        for draft in drafts:
            self.add_draft(draft)
        return len(drafts)

    def add_draft(
        self,
        draft: NotificationDraft,
        status: Optional[NotificationQueueStatus] = None,
    ) -> QueuedNotification:
        order = self.orders.orders.get(draft.order_id) if self.orders else None
        item = QueuedNotification(
            id=uuid.uuid4(),
            order_id=draft.order_id,
            stage_id=draft.stage_id,
            channel=draft.channel,
            recipient=draft.recipient,
            message_body=draft.message_body,
            status=status or draft.status,
            batch_id=draft.batch_id,
            order_number=order.order_number if order else None,
            customer_name=order.customer_name if order else None,
            created_at=datetime.now(timezone.utc),
        )
        self.items[item.id] = item
        return item

    async def list_notifications(
        self,
        status: Optional[NotificationQueueStatus] = NotificationQueueStatus.PENDING_REVIEW,
        page: int = 1,
        limit: int = 50,
    ) -> Tuple[List[QueuedNotification], int]:
        matching = [
            item for item in self.items.values() if status is None or item.status == status
        ]
        start = (page - 1) * limit
        return matching[start:start + limit], len(matching)

    async def get_notification(self, notification_id: uuid.UUID) -> QueuedNotification:
        if notification_id not in self.items:
            raise NotificationNotFoundError("Notification not found")
        return replace(self.items[notification_id])

    async def update_notification(
        self,
        notification_id: uuid.UUID,
        message_body: Optional[str] = None,
        status: Optional[NotificationQueueStatus] = None,
        reviewed_at: Optional[datetime] = None,
    ) -> QueuedNotification:
        item = self.items[notification_id]
        if message_body is not None:
            item.message_body = message_body
        if status is not None:
            item.status = status
        if reviewed_at is not None:
            item.reviewed_at = reviewed_at
        return replace(item)

    async def delete_notification(self, notification_id: uuid.UUID) -> None:
        if self.items.pop(notification_id, None) is None:
            raise NotificationNotFoundError("Notification not found")

    async def get_dispatchable(
        self, notification_ids: Sequence[uuid.UUID]
    ) -> List[QueuedNotification]:
        return [
            replace(self.items[i])
            for i in notification_ids
            if i in self.items and self.items[i].status.is_dispatchable()
        ]

    async def mark_sent(self, notification_id: uuid.UUID, sent_at: datetime) -> None:
        if notification_id in self.fail_marks_for:
            raise StorageError("Failed to mark notification sent")
        item = self.items[notification_id]
        item.status = NotificationQueueStatus.SENT
        item.sent_at = sent_at

    async def mark_failed(self, notification_id: uuid.UUID, error_message: str) -> None:
        if notification_id in self.fail_marks_for:
            raise StorageError("Failed to mark notification failed")
        item = self.items[notification_id]
        item.status = NotificationQueueStatus.FAILED
        item.error_message = error_message


# ============================================================================
# Builders
# ============================================================================


def make_order(
    order_number: str = "PO-1001",
    customer_name: str = "Jane Doe",
    sms: bool = False,
    email: bool = False,
    opted_in: bool = True,
    phone: Optional[str] = "+15551234567",
    email_address: Optional[str] = "jane@example.com",
) -> OrderContact:
    return OrderContact(
        id=uuid.uuid4(),
        order_number=order_number,
        customer_name=customer_name,
        customer_email=email_address,
        customer_phone_normalized=phone,
        preference=NotificationPreferenceRecord(sms_enabled=sms, email_enabled=email)
        if opted_in
        else None,
    )


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment."""
    return Settings(
        environment="test",
        bulk_operation_max=5,
        admin_notes_max_length=50,
        notification_body_max_length=200,
        notify_on_stage_change=True,
    )


@pytest.fixture
def stages() -> List[StageRecord]:
    """Four stage pipeline: payment(1), production(2), shipped(3), delivered(4)."""
    return [
        StageRecord(
            id=1,
            name="payment_received",
            display_name="Payment Received",
            description="Your payment has been confirmed.",
            sort_order=1,
        ),
        StageRecord(
            id=2,
            name="production_started",
            display_name="Production Started",
            description="Your items are now being crafted.",
            sort_order=2,
        ),
        StageRecord(
            id=3,
            name="shipped",
            display_name="Shipped",
            description="Your order is on its way.",
            sort_order=3,
        ),
        StageRecord(
            id=4,
            name="delivered",
            display_name="Delivered",
            description=None,
            sort_order=4,
        ),
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog(stages) -> FakeStageCatalog:
    return FakeStageCatalog(stages)


@pytest.fixture
def ledger() -> FakeProgressLedger:
    return FakeProgressLedger()


@pytest.fixture
def orders() -> FakeOrderLookup:
    return FakeOrderLookup()


@pytest.fixture
def order_factory(orders):
    """Create an order and register it with the order lookup."""

    def _create(**kwargs) -> OrderContact:
        return orders.add(make_order(**kwargs))

    return _create


@pytest.fixture
def queue(orders) -> FakeNotificationQueue:
    return FakeNotificationQueue(orders)


@pytest.fixture
def notifier(queue) -> NotificationIntentGenerator:
    return NotificationIntentGenerator(queue)


@pytest.fixture
def engine(catalog, ledger, clock) -> ProgressTransitionEngine:
    return ProgressTransitionEngine(catalog, ledger, clock=clock)


@pytest.fixture
def progress_service(
    catalog, ledger, orders, notifier, test_settings, clock
) -> ProgressService:
    return ProgressService(
        catalog=catalog,
        ledger=ledger,
        orders=orders,
        notifier=notifier,
        settings=test_settings,
        clock=clock,
    )


@pytest.fixture
def admin_headers() -> dict:
    """Authorization header carrying a valid admin token."""
    token = create_access_token({"sub": "admin-1", "email": "admin@example.com"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def test_client() -> Generator[TestClient, None, None]:
    """
    Synchronous test client for the FastAPI application.

    Dependency overrides and rate limit counters are cleared after each test.
    """
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
    limiter.reset()

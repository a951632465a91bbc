"""
Tests for the notification review admin endpoints.
"""

import uuid
from unittest.mock import AsyncMock

import pytest
from fastapi import status

from order_tracker.api.deps import get_dispatcher, get_review_service
from order_tracker.main import app
from order_tracker.services.notifications.enums import (
    NotificationChannel,
    NotificationQueueStatus,
)
from order_tracker.services.notifications.service import (
    NotificationDispatcher,
    NotificationReviewService,
)
from order_tracker.services.notifications.transports import SendResult
from order_tracker.services.progress.records import NotificationDraft


BASE = "/api/v1/admin/notifications"


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def sms_transport() -> AsyncMock:
    transport = AsyncMock()
    transport.send_sms.return_value = SendResult(success=True, message_id="SM1")
    return transport


@pytest.fixture
def client(test_client, queue, sms_transport):
    """Test client with review and dispatch bound to the fake queue."""
    email_transport = AsyncMock()
    email_transport.send_email.return_value = SendResult(
        success=False, error="Resend not configured"
    )
    app.dependency_overrides[get_review_service] = lambda: NotificationReviewService(queue)
    app.dependency_overrides[get_dispatcher] = lambda: NotificationDispatcher(
        queue,
        sms_transport=sms_transport,
        email_transport=email_transport,
    )
    return test_client


@pytest.fixture
def add_item(queue, order_factory):
    def _add(
        status=NotificationQueueStatus.PENDING_REVIEW,
        channel=NotificationChannel.SMS,
        order_number="PO-1001",
    ):
        order = order_factory(order_number=order_number, sms=True, email=True)
        draft = NotificationDraft(
            order_id=order.id,
            stage_id=2,
            channel=channel,
            recipient=order.customer_phone_normalized
            if channel == NotificationChannel.SMS
            else order.customer_email,
            message_body="Hi Jane, your order moved to Production Started.",
            batch_id=uuid.uuid4(),
        )
        return queue.add_draft(draft, status=status)

    return _add


# ============================================================================
# Listing Tests
# ============================================================================


class TestListNotifications:
    def test_lists_pending_by_default(self, client, admin_headers, add_item):
        item = add_item()
        add_item(NotificationQueueStatus.SENT)

        response = client.get(BASE, headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert [n["id"] for n in data["notifications"]] == [str(item.id)]
        assert data["notifications"][0]["order_number"] == "PO-1001"
        assert data["pagination"] == {"page": 1, "limit": 50, "total": 1, "total_pages": 1}

    def test_all_with_pagination(self, client, admin_headers, add_item):
        for _ in range(3):
            add_item()
        add_item(NotificationQueueStatus.FAILED)

        response = client.get(
            BASE, params={"status": "all", "page": 2, "limit": 3}, headers=admin_headers
        )

        data = response.json()
        assert len(data["notifications"]) == 1
        assert data["pagination"]["total"] == 4
        assert data["pagination"]["total_pages"] == 2

    def test_unknown_status(self, client, admin_headers):
        response = client.get(BASE, params={"status": "archived"}, headers=admin_headers)

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_requires_auth(self, client):
        assert client.get(BASE).status_code == status.HTTP_401_UNAUTHORIZED


# ============================================================================
# Review Tests
# ============================================================================


class TestReviewNotifications:
    def test_approve(self, client, admin_headers, add_item):
        item = add_item()

        response = client.patch(
            BASE,
            json={"id": str(item.id), "status": "approved"},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "approved"
        assert response.json()["reviewed_at"] is not None

    def test_edit_body(self, client, admin_headers, add_item, queue):
        item = add_item()

        response = client.patch(
            BASE,
            json={"id": str(item.id), "message_body": "Shorter message"},
            headers=admin_headers,
        )

        assert response.json()["message_body"] == "Shorter message"
        assert queue.items[item.id].message_body == "Shorter message"

    def test_edit_sent_conflict(self, client, admin_headers, add_item):
        item = add_item(NotificationQueueStatus.SENT)

        response = client.patch(
            BASE,
            json={"id": str(item.id), "message_body": "Changed"},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_empty_update_rejected(self, client, admin_headers, add_item):
        response = client.patch(BASE, json={"id": str(add_item().id)}, headers=admin_headers)

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_update_unknown(self, client, admin_headers):
        response = client.patch(
            BASE,
            json={"id": str(uuid.uuid4()), "status": "approved"},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_delete(self, client, admin_headers, add_item, queue):
        item = add_item()

        response = client.delete(BASE, params={"id": str(item.id)}, headers=admin_headers)

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert item.id not in queue.items

    def test_delete_unknown(self, client, admin_headers):
        response = client.delete(BASE, params={"id": str(uuid.uuid4())}, headers=admin_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND


# ============================================================================
# Send Tests
# ============================================================================


class TestSendNotifications:
    def test_send(self, client, admin_headers, add_item, queue):
        sms = add_item(NotificationQueueStatus.APPROVED)
        email = add_item(channel=NotificationChannel.EMAIL, order_number="PO-2002")

        response = client.post(
            f"{BASE}/send",
            json={"ids": [str(sms.id), str(email.id)]},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "success": True,
            "sent": 1,
            "failed": 1,
            "errors": ["PO-2002 (email): Resend not configured"],
        }
        assert queue.items[sms.id].status == NotificationQueueStatus.SENT
        assert queue.items[email.id].status == NotificationQueueStatus.FAILED

    def test_send_without_ids(self, client, admin_headers):
        response = client.post(f"{BASE}/send", json={"ids": []}, headers=admin_headers)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "No notification IDs provided"

"""
Notification queue data access repository.

Writes review drafts produced by the intent generator and serves the admin
review and dispatch services. Items are returned as QueuedNotification
records with the order number, customer name and stage label attached.
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from order_tracker.core.logging import get_logger
from order_tracker.database.models.notification import NotificationQueueItem
from order_tracker.services.notifications.enums import NotificationQueueStatus
from order_tracker.services.progress.exceptions import (
    NotificationNotFoundError,
    NotificationQueueError,
    StorageError,
)
from order_tracker.services.progress.records import (
    NotificationDraft,
    QueuedNotification,
)

logger = get_logger(__name__)

DISPATCHABLE_STATUSES = (
    NotificationQueueStatus.PENDING_REVIEW,
    NotificationQueueStatus.APPROVED,
)


def item_to_record(item: NotificationQueueItem) -> QueuedNotification:
    return QueuedNotification(
        id=item.id,
        order_id=item.order_id,
        stage_id=item.stage_id,
        channel=item.channel,
        recipient=item.recipient,
        message_body=item.message_body,
        status=item.status,
        batch_id=item.batch_id,
        order_number=item.order.order_number if item.order else None,
        customer_name=item.order.customer_name if item.order else None,
        stage_display_name=item.stage.display_name if item.stage else None,
        reviewed_at=item.reviewed_at,
        sent_at=item.sent_at,
        error_message=item.error_message,
        created_at=item.created_at,
    )


class NotificationQueueRepository:
    """
    Repository for notification queue operations.

    Implements the NotificationQueueWriter protocol plus the reads and
    updates used by review and dispatch.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize notification queue repository.

        Args:
            session: Async database session
        """
        self.session = session

    async def insert_notifications(
        self, drafts: Sequence[NotificationDraft]
    ) -> int:
        """
        Insert drafts in one flush.

        Raises:
            NotificationQueueError: If the write fails
        """
        if not drafts:
            return 0

        items = [
            NotificationQueueItem(
                order_id=draft.order_id,
                stage_id=draft.stage_id,
                channel=draft.channel,
                recipient=draft.recipient,
                message_body=draft.message_body,
                status=draft.status,
                batch_id=draft.batch_id,
            )
            for draft in drafts
        ]
        try:
            async with self.session.begin_nested():
                self.session.add_all(items)
                await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to insert notifications",
                count=len(items),
                batch_id=str(drafts[0].batch_id),
                error=str(e),
            )
            raise NotificationQueueError(
                "Failed to queue notifications",
                count=len(items),
                batch_id=str(drafts[0].batch_id),
            ) from e

        return len(items)

    async def list_notifications(
        self,
        status: Optional[NotificationQueueStatus] = NotificationQueueStatus.PENDING_REVIEW,
        page: int = 1,
        limit: int = 50,
    ) -> Tuple[List[QueuedNotification], int]:
        """
        List queue items newest first.

        Args:
            status: Status filter; None lists every status
            page: 1-based page number
            limit: Page size

        Returns:
            Tuple of (items, total matching count)
        """
        stmt = select(NotificationQueueItem)
        count_stmt = select(func.count()).select_from(NotificationQueueItem)
        if status is not None:
            stmt = stmt.where(NotificationQueueItem.status == status)
            count_stmt = count_stmt.where(NotificationQueueItem.status == status)

        stmt = (
            stmt.order_by(NotificationQueueItem.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )

        try:
            total = (await self.session.execute(count_stmt)).scalar_one()
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to list notifications",
                status=status.value if status else "all",
                error=str(e),
            )
            raise StorageError("Failed to list notifications") from e

        items = [item_to_record(item) for item in result.unique().scalars().all()]
        return items, total

    async def _get_item(self, notification_id: uuid.UUID) -> NotificationQueueItem:
        try:
            item = await self.session.get(NotificationQueueItem, notification_id)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to load notification",
                notification_id=str(notification_id),
                error=str(e),
            )
            raise StorageError(
                "Failed to load notification",
                notification_id=str(notification_id),
            ) from e

        if item is None:
            raise NotificationNotFoundError(
                f"Notification {notification_id} not found",
                notification_id=str(notification_id),
            )
        return item

    async def get_notification(self, notification_id: uuid.UUID) -> QueuedNotification:
        return item_to_record(await self._get_item(notification_id))

    async def update_notification(
        self,
        notification_id: uuid.UUID,
        message_body: Optional[str] = None,
        status: Optional[NotificationQueueStatus] = None,
        reviewed_at: Optional[datetime] = None,
    ) -> QueuedNotification:
        """
        Apply review edits to an item.

        Raises:
            NotificationNotFoundError: If the item does not exist
            StorageError: If the write fails
        """
        item = await self._get_item(notification_id)
        if message_body is not None:
            item.message_body = message_body
        if status is not None:
            item.status = status
        if reviewed_at is not None:
            item.reviewed_at = reviewed_at

        await self._flush("Failed to update notification", notification_id)
        return item_to_record(item)

    async def delete_notification(self, notification_id: uuid.UUID) -> None:
        """
        Delete an item.

        Raises:
            NotificationNotFoundError: If the item does not exist
        """
        stmt = (
            delete(NotificationQueueItem)
            .where(NotificationQueueItem.id == notification_id)
            .returning(NotificationQueueItem.id)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to delete notification",
                notification_id=str(notification_id),
                error=str(e),
            )
            raise StorageError(
                "Failed to delete notification",
                notification_id=str(notification_id),
            ) from e

        if result.scalar_one_or_none() is None:
            raise NotificationNotFoundError(
                f"Notification {notification_id} not found",
                notification_id=str(notification_id),
            )

    async def get_dispatchable(
        self, notification_ids: Sequence[uuid.UUID]
    ) -> List[QueuedNotification]:
        """Return the listed items that are pending review or approved."""
        if not notification_ids:
            return []

        stmt = (
            select(NotificationQueueItem)
            .where(
                NotificationQueueItem.id.in_(list(notification_ids)),
                NotificationQueueItem.status.in_(DISPATCHABLE_STATUSES),
            )
            .order_by(NotificationQueueItem.created_at)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to load notifications for dispatch",
                count=len(notification_ids),
                error=str(e),
            )
            raise StorageError("Failed to fetch notifications") from e

        return [item_to_record(item) for item in result.unique().scalars().all()]

    async def mark_sent(self, notification_id: uuid.UUID, sent_at: datetime) -> None:
        await self._record_outcome(
            notification_id,
            "Failed to mark notification sent",
            status=NotificationQueueStatus.SENT,
            sent_at=sent_at,
            error_message=None,
        )

    async def mark_failed(self, notification_id: uuid.UUID, error_message: str) -> None:
        await self._record_outcome(
            notification_id,
            "Failed to mark notification failed",
            status=NotificationQueueStatus.FAILED,
            error_message=error_message,
        )

    async def _record_outcome(
        self, notification_id: uuid.UUID, message: str, **values: Any
    ) -> None:
        """
        Write a dispatch outcome inside its own savepoint.

        A failed write rolls back only this item, so outcomes already
        recorded for other items in the request survive.

        Raises:
            NotificationNotFoundError: If the item does not exist
            StorageError: If the write fails
        """
        try:
            async with self.session.begin_nested():
                item = await self._get_item(notification_id)
                for key, value in values.items():
                    setattr(item, key, value)
                await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(message, notification_id=str(notification_id), error=str(e))
            raise StorageError(message, notification_id=str(notification_id)) from e

    async def _flush(self, message: str, notification_id: uuid.UUID) -> None:
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(message, notification_id=str(notification_id), error=str(e))
            raise StorageError(message, notification_id=str(notification_id)) from e

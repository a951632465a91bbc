"""
Notification review and dispatch services.

Admins review drafts queued by stage changes: they edit the text, approve or
delete items, and finally send a selection. Sending hands each item to the
SMS or email transport and records the outcome on the item, so an attempted
item always ends up ``sent`` or ``failed``.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from order_tracker.core.config import Settings, get_settings
from order_tracker.core.logging import get_logger, log_performance
from order_tracker.services.notifications.enums import (
    NotificationChannel,
    NotificationQueueStatus,
)
from order_tracker.services.notifications.repository import NotificationQueueRepository
from order_tracker.services.notifications.templates import (
    STAGE_UPDATE_TEMPLATE,
    TemplateEngine,
    TemplateEngineError,
    get_template_engine,
)
from order_tracker.services.notifications.transports import (
    EmailTransport,
    SendResult,
    SMSTransport,
)
from order_tracker.services.progress.exceptions import (
    ImmutableStateError,
    NotificationDispatchError,
    NotificationNotFoundError,
    ProgressValidationError,
    StorageError,
)
from order_tracker.services.progress.records import QueuedNotification

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DispatchResult:
    """Aggregate outcome of a send request."""

    sent: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"sent": self.sent, "failed": self.failed, "errors": self.errors}


class NotificationReviewService:
    """Admin review of queued notifications."""

    def __init__(
        self,
        repository: NotificationQueueRepository,
        body_max_length: int = 5000,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.body_max_length = body_max_length
        self._clock = clock or utc_now

    async def list_notifications(
        self,
        status: Optional[Union[NotificationQueueStatus, str]] = NotificationQueueStatus.PENDING_REVIEW,
        page: int = 1,
        limit: int = 50,
    ) -> Tuple[List[QueuedNotification], int]:
        """
        List queue items.

        Args:
            status: Status filter; "all" or None lists every status
            page: 1-based page number
            limit: Page size

        Raises:
            ProgressValidationError: If the status filter is unknown
        """
        status_filter = None
        if status is not None and status != "all":
            status_filter = self._parse_status(status)
        return await self.repository.list_notifications(
            status=status_filter,
            page=max(page, 1),
            limit=limit,
        )

    async def update_notification(
        self,
        notification_id: uuid.UUID,
        message_body: Optional[str] = None,
        status: Optional[Union[NotificationQueueStatus, str]] = None,
    ) -> QueuedNotification:
        """
        Edit the body and/or review status of a queued item.

        Only pending_review and approved can be set here; approving stamps
        reviewed_at. Items already sent cannot be edited.

        Raises:
            ProgressValidationError: If nothing is changed or a value is invalid
            ImmutableStateError: If the item was already sent
            NotificationNotFoundError: If the item does not exist
        """
        if message_body is None and status is None:
            raise ProgressValidationError(
                "Nothing to update",
                notification_id=str(notification_id),
            )

        new_status = None
        if status is not None:
            new_status = self._parse_status(status)
            if not new_status.is_reviewable():
                raise ProgressValidationError(
                    f"Status cannot be set to {new_status.value} during review",
                    notification_id=str(notification_id),
                    status=new_status.value,
                )

        if message_body is not None:
            message_body = message_body.strip()
            if not message_body:
                raise ProgressValidationError(
                    "Message body cannot be empty",
                    notification_id=str(notification_id),
                )
            if len(message_body) > self.body_max_length:
                raise ProgressValidationError(
                    f"Message body cannot exceed {self.body_max_length} characters",
                    notification_id=str(notification_id),
                    length=len(message_body),
                )

        current = await self.repository.get_notification(notification_id)
        if current.status.is_terminal():
            raise ImmutableStateError(
                "Cannot edit a notification that has been sent",
                notification_id=str(notification_id),
            )

        reviewed_at = None
        if new_status == NotificationQueueStatus.APPROVED:
            reviewed_at = self._clock()

        updated = await self.repository.update_notification(
            notification_id,
            message_body=message_body,
            status=new_status,
            reviewed_at=reviewed_at,
        )
        logger.info(
            "Notification reviewed",
            notification_id=str(notification_id),
            status=updated.status.value,
            body_edited=message_body is not None,
        )
        return updated

    async def delete_notification(self, notification_id: uuid.UUID) -> None:
        await self.repository.delete_notification(notification_id)
        logger.info("Notification deleted", notification_id=str(notification_id))

    @staticmethod
    def _parse_status(
        status: Union[NotificationQueueStatus, str],
    ) -> NotificationQueueStatus:
        if isinstance(status, NotificationQueueStatus):
            return status
        try:
            return NotificationQueueStatus.from_string(status)
        except ValueError as e:
            raise ProgressValidationError(str(e), status=status) from e


class NotificationDispatcher:
    """
    Sends reviewed notifications through the SMS and email transports.

    Only items in pending_review or approved are sent; other ids are ignored.
    """

    def __init__(
        self,
        repository: NotificationQueueRepository,
        sms_transport: SMSTransport,
        email_transport: EmailTransport,
        templates: Optional[TemplateEngine] = None,
        public_app_url: str = "https://example.com",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            repository: Notification queue repository
            sms_transport: Transport for sms items
            email_transport: Transport for email items
            templates: Template engine for subject and HTML wrapper
            public_app_url: Target of the "Track Your Order" link
            clock: Callable returning the current time (UTC)
        """
        self.repository = repository
        self.sms_transport = sms_transport
        self.email_transport = email_transport
        self.templates = templates or get_template_engine()
        self.public_app_url = public_app_url
        self._clock = clock or utc_now

    async def send_notifications(
        self, notification_ids: Sequence[uuid.UUID]
    ) -> DispatchResult:
        """
        Send the listed notifications.

        Returns:
            DispatchResult with counts and "<order number> (<channel>): <error>"
            entries for failed items and for outcomes that could not be stored

        Raises:
            ProgressValidationError: If no ids are given
            StorageError: If the items cannot be loaded
        """
        if not notification_ids:
            raise ProgressValidationError("No notification IDs provided")

        result = DispatchResult()
        with log_performance(
            logger, "notification_dispatch", requested=len(notification_ids)
        ):
            items = await self.repository.get_dispatchable(notification_ids)
            for item in items:
                await self._dispatch_one(item, result)

        logger.info(
            "Notification dispatch finished",
            requested=len(notification_ids),
            sent=result.sent,
            failed=result.failed,
        )
        return result

    async def _dispatch_one(
        self, item: QueuedNotification, result: DispatchResult
    ) -> None:
        label = f"{item.order_number or 'Unknown'} ({item.channel.value})"
        try:
            outcome = await self._send_one(item)
        except NotificationDispatchError as e:
            outcome = SendResult(success=False, error=e.message)

        if outcome.success:
            # Delivered; a failed mark is reported but still counts as sent.
            result.sent += 1
            logger.info(
                "Notification sent",
                notification_id=str(item.id),
                channel=item.channel.value,
                provider_message_id=outcome.message_id,
            )
            try:
                await self.repository.mark_sent(item.id, self._clock())
            except (StorageError, NotificationNotFoundError) as e:
                result.errors.append(f"{label}: sent but not recorded: {e.message}")
                logger.error(
                    "Failed to record sent notification",
                    notification_id=str(item.id),
                    error=e.message,
                )
            return

        error = outcome.error or "Unknown error"
        result.failed += 1
        result.errors.append(f"{label}: {error}")
        logger.warning(
            "Notification failed",
            notification_id=str(item.id),
            channel=item.channel.value,
            error=error,
        )
        try:
            await self.repository.mark_failed(item.id, error)
        except (StorageError, NotificationNotFoundError) as e:
            result.errors.append(f"{label}: failure not recorded: {e.message}")
            logger.error(
                "Failed to record notification failure",
                notification_id=str(item.id),
                error=e.message,
            )

    async def _send_one(self, item: QueuedNotification) -> SendResult:
        """
        Hand one item to its transport.

        Raises:
            NotificationDispatchError: If the item cannot be prepared for sending
        """
        if item.channel == NotificationChannel.SMS:
            return await self.sms_transport.send_sms(item.recipient, item.message_body)

        if item.channel == NotificationChannel.EMAIL:
            try:
                email = self.templates.render_email(
                    STAGE_UPDATE_TEMPLATE,
                    item.message_body,
                    {
                        "order_number": item.order_number,
                        "track_url": self.public_app_url,
                    },
                )
            except TemplateEngineError as e:
                raise NotificationDispatchError(
                    str(e), notification_id=str(item.id)
                ) from e
            return await self.email_transport.send_email(
                item.recipient,
                email["subject"],
                email["html_body"],
                email["text_body"],
            )

        raise NotificationDispatchError(
            "Unknown channel", notification_id=str(item.id)
        )


def get_notification_dispatcher(
    repository: NotificationQueueRepository,
    sms_transport: SMSTransport,
    email_transport: EmailTransport,
    settings: Optional[Settings] = None,
) -> NotificationDispatcher:
    settings = settings or get_settings()
    return NotificationDispatcher(
        repository=repository,
        sms_transport=sms_transport,
        email_transport=email_transport,
        public_app_url=settings.public_app_url,
    )

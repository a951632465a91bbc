"""
Notification intent generator.

Turns a genuine stage transition into review drafts: one pending_review
queue item per channel the customer enabled, all tagged with the caller's
batch id. Queuing is best-effort. Failures are logged and swallowed so they
never undo a progress transition that has already been written.
"""

import uuid
from typing import List, Optional

from order_tracker.core.logging import get_logger
from order_tracker.services.notifications.enums import NotificationChannel
from order_tracker.services.notifications.templates import (
    STAGE_UPDATE_TEMPLATE,
    TemplateEngine,
    get_template_engine,
)
from order_tracker.services.progress.ports import NotificationQueueWriter
from order_tracker.services.progress.records import (
    NotificationDraft,
    OrderContact,
    StageRecord,
)

logger = get_logger(__name__)


class NotificationIntentGenerator:
    """Builds and queues stage change notification drafts."""

    def __init__(
        self,
        writer: NotificationQueueWriter,
        templates: Optional[TemplateEngine] = None,
    ):
        """
        Initialize the generator.

        Args:
            writer: Notification queue storage
            templates: Template engine for the message body
        """
        self.writer = writer
        self.templates = templates or get_template_engine()

    def render_body(self, order: OrderContact, stage: StageRecord) -> str:
        """Render the customer message for an order reaching a stage."""
        return self.templates.render_message(
            STAGE_UPDATE_TEMPLATE,
            {
                "first_name": order.first_name,
                "order_number": order.order_number,
                "stage_display_name": stage.display_name,
                "stage_description": stage.description,
            },
        )

    def build_drafts(
        self,
        order: OrderContact,
        stage: StageRecord,
        batch_id: uuid.UUID,
    ) -> List[NotificationDraft]:
        """
        Build one draft per enabled channel.

        Channels without a recipient on file are skipped.
        """
        preference = order.preference
        if preference is None:
            return []

        recipients = []
        if preference.sms_enabled:
            recipients.append(
                (NotificationChannel.SMS, order.customer_phone_normalized)
            )
        if preference.email_enabled:
            recipients.append((NotificationChannel.EMAIL, order.customer_email))

        if not recipients:
            return []

        body = self.render_body(order, stage)
        drafts = []
        for channel, recipient in recipients:
            if not recipient:
                logger.warning(
                    "Notification channel enabled without recipient",
                    order_id=str(order.id),
                    channel=channel.value,
                )
                continue
            drafts.append(
                NotificationDraft(
                    order_id=order.id,
                    stage_id=stage.id,
                    channel=channel,
                    recipient=recipient,
                    message_body=body,
                    batch_id=batch_id,
                )
            )
        return drafts

    async def queue_notifications(
        self,
        order: OrderContact,
        stage: StageRecord,
        batch_id: uuid.UUID,
    ) -> int:
        """
        Queue review drafts for an order that moved to a stage.

        Args:
            order: Order with its notification preference
            stage: Stage the order moved to
            batch_id: Identifier shared by the calling operation

        Returns:
            Number of queued items; 0 when nothing was queued or queuing failed
        """
        try:
            drafts = self.build_drafts(order, stage, batch_id)
            if not drafts:
                logger.debug(
                    "No notification channels enabled",
                    order_id=str(order.id),
                    stage_id=stage.id,
                )
                return 0

            inserted = await self.writer.insert_notifications(drafts)
        except Exception as e:
            logger.error(
                "Failed to queue notifications",
                order_id=str(order.id),
                stage_id=stage.id,
                batch_id=str(batch_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0

        logger.info(
            "Notifications queued for review",
            order_id=str(order.id),
            stage_id=stage.id,
            batch_id=str(batch_id),
            channels=[d.channel.value for d in drafts],
        )
        return inserted

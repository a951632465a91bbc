"""
Notification queue Pydantic schemas for the admin review API.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from order_tracker.services.notifications.enums import (
    NotificationChannel,
    NotificationQueueStatus,
)


class NotificationResponse(BaseModel):
    """Queued notification with order and stage labels."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    stage_id: int
    stage_display_name: Optional[str] = None
    channel: NotificationChannel
    recipient: str
    message_body: str
    status: NotificationQueueStatus
    batch_id: UUID
    reviewed_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    pagination: PaginationMeta


class NotificationUpdateRequest(BaseModel):
    """Review edit for one queued notification."""

    id: UUID = Field(..., description="Notification to edit")
    message_body: Optional[str] = Field(None, description="Replacement message text")
    status: Optional[str] = Field(None, description="pending_review or approved")

    @model_validator(mode="after")
    def validate_has_change(self) -> "NotificationUpdateRequest":
        if self.message_body is None and self.status is None:
            raise ValueError("message_body or status is required")
        return self


class NotificationSendRequest(BaseModel):
    ids: list[UUID] = Field(..., description="Notifications to send")


class NotificationSendResponse(BaseModel):
    success: bool = True
    sent: int
    failed: int
    errors: list[str] = Field(default_factory=list)

"""
Notification review admin API endpoints.

List, edit, approve, delete and send the drafts queued by stage changes.
"""

import math
from uuid import UUID

from fastapi import APIRouter, Query, Request, status

from order_tracker.api.deps import CurrentAdmin, DispatcherDep, ReviewServiceDep
from order_tracker.api.rate_limit import limiter, send_rate_limit
from order_tracker.core.logging import get_logger
from order_tracker.schemas.notifications import (
    NotificationListResponse,
    NotificationResponse,
    NotificationSendRequest,
    NotificationSendResponse,
    NotificationUpdateRequest,
    PaginationMeta,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/notifications", tags=["Notifications"])


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List queued notifications",
)
async def list_notifications(
    admin: CurrentAdmin,
    service: ReviewServiceDep,
    status_filter: str = Query(
        "pending_review",
        alias="status",
        description="Queue status or 'all'",
    ),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
) -> NotificationListResponse:
    items, total = await service.list_notifications(
        status=status_filter,
        page=page,
        limit=limit,
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(item) for item in items],
        pagination=PaginationMeta(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )


@router.patch(
    "",
    response_model=NotificationResponse,
    summary="Edit or approve a queued notification",
)
async def update_notification(
    payload: NotificationUpdateRequest,
    admin: CurrentAdmin,
    service: ReviewServiceDep,
) -> NotificationResponse:
    updated = await service.update_notification(
        payload.id,
        message_body=payload.message_body,
        status=payload.status,
    )
    return NotificationResponse.model_validate(updated)


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a queued notification",
)
async def delete_notification(
    admin: CurrentAdmin,
    service: ReviewServiceDep,
    notification_id: UUID = Query(..., alias="id"),
) -> None:
    await service.delete_notification(notification_id)


@router.post(
    "/send",
    response_model=NotificationSendResponse,
    summary="Send selected notifications",
)
@limiter.limit(send_rate_limit)
async def send_notifications(
    request: Request,
    payload: NotificationSendRequest,
    admin: CurrentAdmin,
    dispatcher: DispatcherDep,
) -> NotificationSendResponse:
    """
    Send the selected notifications.

    Items that are not pending review or approved are ignored. Delivery
    failures are recorded on the item and listed in ``errors``.
    """
    logger.info("Sending notifications", count=len(payload.ids), admin_id=admin.id)
    result = await dispatcher.send_notifications(payload.ids)
    return NotificationSendResponse(**result.to_dict())

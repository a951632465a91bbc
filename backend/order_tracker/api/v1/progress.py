"""
Order progress admin API endpoints.

Single-order stage updates, order timelines, progress initialization and
bulk stage updates. Domain errors are translated to HTTP responses by the
application-level ProgressError handler.
"""

from uuid import UUID

from fastapi import APIRouter, Request, status

from order_tracker.api.deps import CurrentAdmin, ProgressServiceDep
from order_tracker.api.rate_limit import bulk_rate_limit, limiter
from order_tracker.core.logging import get_logger
from order_tracker.schemas.progress import (
    BulkProgressRequest,
    BulkProgressResponse,
    InitializeProgressRequest,
    InitializeProgressResponse,
    OrderProgressResponse,
    ProgressRecordResponse,
    ProgressUpdateRequest,
    ProgressUpdateResponse,
    StageProgressResponse,
)
from order_tracker.schemas.stages import StageResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/orders", tags=["Order Progress"])


@router.patch(
    "/{order_id}/progress",
    response_model=ProgressUpdateResponse,
    summary="Update one stage of an order",
)
async def update_order_progress(
    order_id: UUID,
    payload: ProgressUpdateRequest,
    admin: CurrentAdmin,
    service: ProgressServiceDep,
) -> ProgressUpdateResponse:
    """
    Set the status of one stage for one order.

    Starting or completing a stage completes every earlier stage. Completed
    stages cannot be moved back (409).
    """
    logger.info(
        "Updating order progress",
        order_id=str(order_id),
        stage_id=payload.stage_id,
        status=payload.status,
    )

    result = await service.update_single_order_progress(
        order_id=order_id,
        stage_id=payload.stage_id,
        status=payload.status,
        estimated_start_date=payload.estimated_start_date,
        estimated_end_date=payload.estimated_end_date,
        admin_notes=payload.admin_notes,
        queue_notification=payload.queue_notification,
    )
    transition = result.transition

    return ProgressUpdateResponse(
        previous_status=transition.previous_status,
        changed=transition.changed,
        progress=ProgressRecordResponse.model_validate(transition.record),
        cascaded_stage_ids=transition.cascaded_stage_ids,
        cascade_failures=transition.cascade_failures,
        notifications_queued=result.notifications_queued,
        batch_id=result.batch_id,
    )


@router.get(
    "/{order_id}/progress",
    response_model=OrderProgressResponse,
    summary="Get order timeline",
)
async def get_order_progress(
    order_id: UUID,
    admin: CurrentAdmin,
    service: ProgressServiceDep,
) -> OrderProgressResponse:
    timeline = await service.get_order_progress(order_id)
    return OrderProgressResponse(
        order_id=order_id,
        stages=[
            StageProgressResponse(
                stage=StageResponse.model_validate(entry.stage),
                progress=ProgressRecordResponse.model_validate(entry.progress),
                recorded=entry.recorded,
            )
            for entry in timeline
        ],
    )


@router.post(
    "/{order_id}/progress/initialize",
    response_model=InitializeProgressResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create missing progress rows",
)
async def initialize_order_progress(
    order_id: UUID,
    payload: InitializeProgressRequest,
    admin: CurrentAdmin,
    service: ProgressServiceDep,
) -> InitializeProgressResponse:
    created = await service.initialize_order_progress(
        order_id,
        precomplete_first_stage=payload.precomplete_first_stage,
    )
    return InitializeProgressResponse(order_id=order_id, created=created)


@router.post(
    "/bulk-progress",
    response_model=BulkProgressResponse,
    summary="Update one stage for many orders",
)
@limiter.limit(bulk_rate_limit)
async def bulk_update_progress(
    request: Request,
    payload: BulkProgressRequest,
    admin: CurrentAdmin,
    service: ProgressServiceDep,
) -> BulkProgressResponse:
    """
    Apply one stage status to many orders.

    Orders whose stage is already completed, or whose row fails to save,
    are skipped and listed in ``errors``; the rest are updated.
    """
    logger.info(
        "Bulk progress update requested",
        order_count=len(payload.order_ids),
        stage_id=payload.stage_id,
        status=payload.status,
        queue_notification=payload.queue_notification,
    )

    result = await service.bulk_update_progress(
        order_ids=payload.order_ids,
        stage_id=payload.stage_id,
        status=payload.status,
        queue_notification=payload.queue_notification,
    )
    return BulkProgressResponse.model_validate(result.to_dict())

"""
Stage catalog admin API endpoints.
"""

from fastapi import APIRouter

from order_tracker.api.deps import CurrentAdmin, ProgressServiceDep
from order_tracker.schemas.stages import StageListResponse, StageResponse

router = APIRouter(prefix="/admin/stages", tags=["Stages"])


@router.get(
    "",
    response_model=StageListResponse,
    summary="List production stages",
)
async def list_stages(
    admin: CurrentAdmin,
    service: ProgressServiceDep,
) -> StageListResponse:
    stages = await service.list_stages()
    return StageListResponse(
        stages=[StageResponse.model_validate(stage) for stage in stages]
    )

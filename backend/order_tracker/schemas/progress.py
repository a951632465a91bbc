"""
Order progress Pydantic schemas for API request/response validation.

Statuses are accepted as plain strings and validated by the progress service
so an unknown status is reported like every other request-level error.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from order_tracker.schemas.stages import StageResponse
from order_tracker.services.progress.enums import StageStatus


class ProgressUpdateRequest(BaseModel):
    """Single-order stage update."""

    model_config = ConfigDict(str_strip_whitespace=True)

    stage_id: int = Field(..., gt=0, description="Stage to update")
    status: str = Field(
        ...,
        min_length=1,
        description="not_started, in_progress or completed",
    )
    estimated_start_date: Optional[date] = Field(
        None,
        description="Planned start date",
    )
    estimated_end_date: Optional[date] = Field(
        None,
        description="Planned end date",
    )
    admin_notes: Optional[str] = Field(
        None,
        description="Internal notes",
    )
    queue_notification: bool = Field(
        False,
        description="Queue customer notifications for review if the status changes",
    )

    @model_validator(mode="after")
    def validate_date_range(self) -> "ProgressUpdateRequest":
        """Ensure the estimated end is not before the estimated start."""
        if (
            self.estimated_start_date
            and self.estimated_end_date
            and self.estimated_end_date < self.estimated_start_date
        ):
            raise ValueError("estimated_end_date cannot be before estimated_start_date")
        return self


class ProgressRecordResponse(BaseModel):
    """Stored progress row."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID
    stage_id: int
    status: StageStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    estimated_start_date: Optional[date] = None
    estimated_end_date: Optional[date] = None
    admin_notes: Optional[str] = None


class ProgressUpdateResponse(BaseModel):
    """Result of a single-order stage update."""

    success: bool = True
    previous_status: StageStatus
    changed: bool
    progress: ProgressRecordResponse
    cascaded_stage_ids: list[int] = Field(default_factory=list)
    cascade_failures: list[int] = Field(default_factory=list)
    notifications_queued: int = 0
    batch_id: Optional[UUID] = None


class StageProgressResponse(BaseModel):
    """Timeline entry for one stage."""

    model_config = ConfigDict(from_attributes=True)

    stage: StageResponse
    progress: ProgressRecordResponse
    recorded: bool = Field(..., description="False when the row was never written")


class OrderProgressResponse(BaseModel):
    """Order timeline ordered by stage sort_order."""

    order_id: UUID
    stages: list[StageProgressResponse]


class InitializeProgressRequest(BaseModel):
    """Create missing progress rows for an order."""

    precomplete_first_stage: bool = Field(
        False,
        description="Create the first stage as completed (CSV import)",
    )


class InitializeProgressResponse(BaseModel):
    success: bool = True
    order_id: UUID
    created: int


class BulkProgressRequest(BaseModel):
    """Apply one stage status to many orders."""

    model_config = ConfigDict(str_strip_whitespace=True)

    order_ids: list[UUID] = Field(..., description="Orders to update")
    stage_id: int = Field(..., gt=0, description="Stage to update")
    status: str = Field(..., min_length=1, description="New stage status")
    queue_notification: bool = Field(
        False,
        description="Queue customer notifications for orders whose status changed",
    )


class BulkProgressError(BaseModel):
    order_id: UUID
    order_number: Optional[str] = None
    reason: str


class BulkProgressResponse(BaseModel):
    """Aggregate result of a bulk update."""

    model_config = ConfigDict(from_attributes=True)

    success: bool = True
    updated: int
    skipped: int
    errors: list[BulkProgressError] = Field(default_factory=list)
    batch_id: UUID
    notifications_queued: int = 0

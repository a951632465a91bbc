"""
Stage catalog Pydantic schemas.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StageResponse(BaseModel):
    """Production stage."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Stage identifier")
    name: str = Field(..., description="Unique machine key")
    display_name: str = Field(..., description="Human readable stage name")
    description: Optional[str] = Field(None, description="Customer facing description")
    sort_order: int = Field(..., description="Pipeline position")
    icon_name: Optional[str] = Field(None, description="UI icon identifier")


class StageListResponse(BaseModel):
    """Stages ordered by sort_order."""

    stages: list[StageResponse] = Field(default_factory=list)

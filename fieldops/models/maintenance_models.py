"""
Maintenance Data Models — Routine backlog input and forecast output.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class Routine(BaseModel):
    """One recurring routine from the task-management backlog."""

    building_id: str
    category: str
    estimated_duration_minutes: float = Field(default=0.0, ge=0)
    requires_photo: bool = False
    id: str | None = None
    title: str = ""
    building_name: str = ""


class ContributingFactor(BaseModel):
    """A named, weighted input to a prediction."""

    name: str
    value: float
    weight: float


class MaintenancePrediction(BaseModel):
    """Forward-looking maintenance risk for one building."""

    building_id: str
    building_name: str = ""
    predicted_issue: str
    likelihood: float = Field(..., ge=0, le=1)
    estimated_days: int = Field(..., ge=1)
    task_count: int = 0
    recommended_actions: list[str] = Field(default_factory=list)
    contributing_factors: list[ContributingFactor] = Field(default_factory=list)


class PredictionRequest(BaseModel):
    """Request body for POST /maintenance/predictions."""

    routines: list[Routine] = Field(default_factory=list)
    building_id: str | None = Field(default=None, description="Forecast a single building")
    top_n: int | None = Field(default=None, ge=1, description="Defaults to settings.prediction_top_n")

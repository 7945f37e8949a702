"""
Refresh Data Models — Cached snapshots, refresh results and API contracts.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from fieldops.models.compliance_models import ComplianceScore, FinancialExposure
from fieldops.models.emergency_models import EmergencyState
from fieldops.models.violation_models import SourceAuthority, Violation

RefreshTrigger = Literal["on_demand", "interval"]


class BuildingSnapshot(BaseModel):
    """
    Last-known-good state for one building, written as a single unit.

    The score and exposure were computed from exactly `violations`, so a
    reader can never see a score paired with a different violation set.
    """

    model_config = ConfigDict(frozen=True)

    building_id: str
    source_violations: dict[SourceAuthority, list[Violation]] = Field(default_factory=dict)
    source_fetched_at: dict[SourceAuthority, datetime] = Field(default_factory=dict)
    score: ComplianceScore
    exposure: FinancialExposure
    computed_at: datetime
    generation: int = 0

    @property
    def violations(self) -> list[Violation]:
        return [v for vs in self.source_violations.values() for v in vs]


class BuildingRefreshResult(BaseModel):
    """Outcome of one building's refresh cycle."""

    building_id: str
    status: Literal["fresh", "stale", "unknown", "failed"]
    stale: bool = False
    score: ComplianceScore | None = None
    exposure: FinancialExposure | None = None
    emergency_state: EmergencyState | None = None
    failed_sources: list[SourceAuthority] = Field(default_factory=list)
    missing_sources: list[SourceAuthority] = Field(default_factory=list)
    malformed_records: int = 0
    last_successful_at: datetime | None = None
    error: str | None = None


class RefreshResult(BaseModel):
    """Per-building outcomes of one refresh request."""

    trigger: RefreshTrigger = "on_demand"
    results: dict[str, BuildingRefreshResult] = Field(default_factory=dict)
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: float = 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def stale(self) -> bool:
        return any(r.stale for r in self.results.values())

    @property
    def succeeded(self) -> list[str]:
        return [b for b, r in self.results.items() if r.status in ("fresh", "stale")]

    @property
    def failed(self) -> list[str]:
        return [b for b, r in self.results.items() if r.status in ("unknown", "failed")]


class RefreshAuditEntry(BaseModel):
    """Audit metadata for one building refresh."""

    event: Literal["refresh"] = "refresh"
    building_id: str
    trigger: RefreshTrigger
    status: str
    score: float | None = None
    risk_tier: str | None = None
    failed_sources: list[str] = Field(default_factory=list)
    malformed_records: int = 0
    duration_ms: float = 0.0


class RefreshRequest(BaseModel):
    """Request body for POST /refresh."""

    building_ids: list[str] = Field(default_factory=list)


class ScheduleRequest(BaseModel):
    """Request body for POST /refresh/schedule."""

    building_ids: list[str] = Field(..., min_length=1)
    interval_seconds: float | None = Field(
        default=None, gt=0, description="Defaults to settings.refresh_interval_seconds"
    )

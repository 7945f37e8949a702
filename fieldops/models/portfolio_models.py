"""
Portfolio Data Models — Portfolio metrics, critical buildings and alerts.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from fieldops.models.compliance_models import RiskTier
from fieldops.models.violation_models import SourceAuthority

AlertType = Literal["critical", "warning", "info"]


class BuildingComplianceSummary(BaseModel):
    """One building's cached compliance picture, flattened for dashboards."""

    building_id: str
    name: str
    address: str = ""
    score: float
    grade: str
    risk_tier: RiskTier
    open_violations: int = 0
    critical_violations: int = 0
    total_fines: float = 0.0
    outstanding_fines: float = 0.0
    daily_penalty_rate: float = 0.0
    estimated_resolution_cost: float = 0.0
    last_inspection: datetime | None = None
    next_inspection: datetime | None = None
    stale: bool = False
    failed_sources: list[SourceAuthority] = Field(default_factory=list)
    last_successful_at: datetime


class ComplianceAlert(BaseModel):
    id: str
    type: AlertType
    title: str
    message: str
    building_id: str
    building_name: str
    priority: int = Field(..., ge=1, description="1 is most urgent")
    created_at: datetime


class PortfolioMetrics(BaseModel):
    total_buildings: int = 0
    critical_buildings: int = 0
    stale_buildings: int = 0
    overall_score: float | None = Field(default=None, description="Mean score; None for an empty portfolio")
    overall_grade: str | None = None
    total_fines: float = 0.0
    outstanding_fines: float = 0.0
    paid_fines: float = 0.0
    daily_penalty_rate: float = 0.0
    estimated_resolution_cost: float = 0.0


class AlertBuckets(BaseModel):
    """Building ids grouped by how urgently they need attention."""

    critical: list[str] = Field(default_factory=list)
    warning: list[str] = Field(default_factory=list)
    info: list[str] = Field(default_factory=list)


class PortfolioReport(BaseModel):
    generated_at: datetime
    metrics: PortfolioMetrics
    critical_buildings: list[BuildingComplianceSummary] = Field(default_factory=list)
    alerts: list[ComplianceAlert] = Field(default_factory=list)
    buckets: AlertBuckets = Field(default_factory=AlertBuckets)

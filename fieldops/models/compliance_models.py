"""
Compliance Data Models — Score, grade, risk tier and financial exposure.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field


class RiskTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Trend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class SeverityDeduction(BaseModel):
    """How one severity class contributes to the score deduction."""

    severity_class: str
    open_count: int
    weight: float
    cap: float
    deduction: float


class ScoreBreakdown(BaseModel):
    """Explainable breakdown of a compliance score."""

    severity_deductions: list[SeverityDeduction] = Field(default_factory=list)
    penalty_deduction: float = 0.0
    outstanding_fines: float = 0.0
    formula: str = Field(
        default="score = 100 − Σ_class min(cap, Σ_k weight × 0.85^k) − min(10, fines / 2500)",
        description="Human-readable formula used",
    )


class ComplianceScore(BaseModel):
    """Per-building compliance score. Recomputed wholesale every cycle."""

    building_id: str
    score: float = Field(..., ge=0, le=100, description="Compliance score 0-100")
    grade: str = Field(..., pattern="^[ABCDF]$")
    risk_tier: RiskTier
    trend: Trend = Trend.STABLE
    computed_at: datetime
    open_violations: int = 0
    violation_fingerprint: str = Field(
        default="", description="SHA-256 of the violation set this score was computed from"
    )
    breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)


PROJECTION_HORIZONS_DAYS = (30, 60, 90)


class FinancialExposure(BaseModel):
    """Outstanding fines plus daily penalty accrual for one building."""

    outstanding_fines: float = Field(default=0.0, ge=0)
    daily_penalty_rate: float = Field(default=0.0, ge=0)
    as_of: datetime
    accruing_violations: int = 0

    def projected_total(self, horizon_days: float) -> float:
        """Fines plus accrual over `horizon_days`. Negative horizons count as 0."""
        horizon = max(0.0, float(horizon_days))
        return round(self.outstanding_fines + self.daily_penalty_rate * horizon, 2)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def projections(self) -> dict[str, float]:
        return {f"{h}d": self.projected_total(h) for h in PROJECTION_HORIZONS_DAYS}

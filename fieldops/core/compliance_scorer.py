"""
Compliance Scoring Engine — Computes explainable compliance scores from violations.

score = 100 − Σ_class min(cap, Σ_k weight × 0.85^k) − min(10, fines / 2500)

where k counts the open violations of a severity class (0 for the first).
The running score is clamped to [0, 100] after every deduction, so it stays
bounded for any input size and never increases when an open violation is added.

The non-critical caps plus the fines cap total 48 points, so a building with
no critical violations bottoms out at 52 and can never reach the critical tier.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone

from fieldops.models.compliance_models import (
    ComplianceScore,
    RiskTier,
    ScoreBreakdown,
    SeverityDeduction,
    Trend,
)
from fieldops.models.violation_models import SeverityClass, Violation

logger = logging.getLogger("fieldops.scorer")

SEVERITY_WEIGHTS: dict[SeverityClass, float] = {
    SeverityClass.CRITICAL: 35.0,
    SeverityClass.HIGH: 8.0,
    SeverityClass.MEDIUM: 4.0,
    SeverityClass.ADVISORY: 1.0,
}

SEVERITY_CAPS: dict[SeverityClass, float] = {
    SeverityClass.CRITICAL: 100.0,
    SeverityClass.HIGH: 20.0,
    SeverityClass.MEDIUM: 12.0,
    SeverityClass.ADVISORY: 6.0,
}

DIMINISHING_FACTOR = 0.85
PENALTY_DEDUCTION_CAP = 10.0
PENALTY_DOLLARS_PER_POINT = 2500.0

GRADE_THRESHOLDS: list[tuple[float, str]] = [(90, "A"), (80, "B"), (70, "C"), (60, "D")]

RISK_TIER_THRESHOLDS: list[tuple[float, RiskTier]] = [
    (85, RiskTier.LOW),
    (70, RiskTier.MEDIUM),
    (50, RiskTier.HIGH),
]


def grade_for(score: float) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


def risk_tier_for(score: float) -> RiskTier:
    for threshold, tier in RISK_TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return RiskTier.CRITICAL


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def fingerprint_violations(violations: list[Violation]) -> str:
    """Order-independent SHA-256 of a violation set."""
    parts = sorted(
        f"{v.id}|{v.status.value}|{v.severity_class.value}|{v.penalty_amount}"
        for v in violations
    )
    return hashlib.sha256("\n".join(parts).encode("utf-8")).hexdigest()


def compute_score(violations: list[Violation]) -> tuple[float, ScoreBreakdown]:
    """
    Compute the compliance score of a violation set.

    Pure function: identical inputs always produce identical output.
    Resolved violations are ignored.

    Returns:
        (score rounded to one decimal, explainable breakdown)
    """
    open_violations = [v for v in violations if v.is_open]
    score = 100.0
    deductions: list[SeverityDeduction] = []

    for severity in SeverityClass:
        count = sum(1 for v in open_violations if v.severity_class == severity)
        weight = SEVERITY_WEIGHTS[severity]
        cap = SEVERITY_CAPS[severity]
        class_total = 0.0
        for k in range(count):
            step = min(weight * DIMINISHING_FACTOR**k, cap - class_total)
            if step <= 0:
                break
            class_total += step
            score = _clamp(score - step)
        deductions.append(
            SeverityDeduction(
                severity_class=severity.value,
                open_count=count,
                weight=weight,
                cap=cap,
                deduction=round(class_total, 4),
            )
        )

    fines = sum(v.penalty_amount or 0.0 for v in open_violations)
    penalty_deduction = min(PENALTY_DEDUCTION_CAP, fines / PENALTY_DOLLARS_PER_POINT)
    score = _clamp(score - penalty_deduction)

    breakdown = ScoreBreakdown(
        severity_deductions=deductions,
        penalty_deduction=round(penalty_deduction, 4),
        outstanding_fines=round(fines, 2),
    )
    return round(score, 1), breakdown


class ComplianceScorer:
    """
    Scores buildings and remembers the last score per building for the trend.

    The depth-1 score history is the only state; everything else is derived
    from the violation set passed in.
    """

    def __init__(self) -> None:
        self._previous: dict[str, float] = {}

    def score(
        self,
        building_id: str,
        violations: list[Violation],
        as_of: datetime | None = None,
    ) -> ComplianceScore:
        value, breakdown = compute_score(violations)
        previous = self._previous.get(building_id)

        if previous is None or value == previous:
            trend = Trend.STABLE
        elif value > previous:
            trend = Trend.IMPROVING
        else:
            trend = Trend.DECLINING

        self._previous[building_id] = value

        result = ComplianceScore(
            building_id=building_id,
            score=value,
            grade=grade_for(value),
            risk_tier=risk_tier_for(value),
            trend=trend,
            computed_at=as_of or datetime.now(timezone.utc),
            open_violations=sum(1 for v in violations if v.is_open),
            violation_fingerprint=fingerprint_violations(violations),
            breakdown=breakdown,
        )
        logger.debug(
            f"[{building_id}] score={value} grade={result.grade} "
            f"tier={result.risk_tier.value} trend={trend.value}"
        )
        return result

    def previous_score(self, building_id: str) -> float | None:
        return self._previous.get(building_id)

"""
Financial Exposure Calculator — Outstanding fines and daily penalty accrual.

    outstanding_fines  = Σ penalty_amount over open violations (missing → 0)
    daily_penalty_rate = Σ rate[severity] over open violations of accruing classes
    projected_total(h) = outstanding_fines + daily_penalty_rate × h
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from fieldops.config import settings
from fieldops.models.compliance_models import FinancialExposure
from fieldops.models.violation_models import SeverityClass, Violation


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def compute_exposure(
    violations: list[Violation],
    as_of: datetime | None = None,
    daily_rates: dict[str, float] | None = None,
    accruing_classes: Iterable[str] | None = None,
) -> FinancialExposure:
    """
    Compute financial exposure of a building's violations at `as_of`.

    Violations issued after `as_of` do not count yet. Negative rates are
    treated as zero so the result never goes negative.
    """
    as_of = _aware(as_of or datetime.now(timezone.utc))
    rates = daily_rates if daily_rates is not None else settings.daily_penalty_rates
    accruing = {
        SeverityClass(c)
        for c in (accruing_classes if accruing_classes is not None else settings.accruing_severity_classes)
    }

    outstanding = 0.0
    daily_rate = 0.0
    accruing_count = 0

    for v in violations:
        if not v.is_open:
            continue
        if v.issued_at is not None and _aware(v.issued_at) > as_of:
            continue
        outstanding += max(0.0, v.penalty_amount or 0.0)
        if v.severity_class in accruing:
            daily_rate += max(0.0, rates.get(v.severity_class.value, 0.0))
            accruing_count += 1

    return FinancialExposure(
        outstanding_fines=round(outstanding, 2),
        daily_penalty_rate=round(daily_rate, 2),
        as_of=as_of,
        accruing_violations=accruing_count,
    )

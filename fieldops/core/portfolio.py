"""
Portfolio Reporter — Cross-building metrics and compliance alerts.

Built entirely from cached snapshots; nothing here talks to a registry.

Alerts per building, most urgent first:
  1  critical  open critical violations
  2  warning   outstanding fines above $1,000
  3  warning   compliance score below 70
  4  info      latest refresh missed one or more registries

Buckets group buildings by risk tier: critical → critical, high → warning,
medium → info. Low-risk buildings need no attention and are left out.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from fieldops.cache.snapshot_cache import CacheEntry
from fieldops.core.compliance_scorer import grade_for
from fieldops.core.directory import BuildingDirectory
from fieldops.models.compliance_models import RiskTier
from fieldops.models.portfolio_models import (
    AlertBuckets,
    BuildingComplianceSummary,
    ComplianceAlert,
    PortfolioMetrics,
    PortfolioReport,
)
from fieldops.models.violation_models import SeverityClass, SourceAuthority, Violation

logger = logging.getLogger("fieldops.portfolio")

# Flat remediation estimate per open violation. Sanitation summonses are
# settled by paying the imposed penalty instead.
RESOLUTION_COSTS: dict[SeverityClass, float] = {
    SeverityClass.CRITICAL: 500.0,
    SeverityClass.HIGH: 200.0,
    SeverityClass.MEDIUM: 100.0,
    SeverityClass.ADVISORY: 0.0,
}
PENALTY_SETTLED_AUTHORITIES = frozenset({SourceAuthority.SANITATION})

HIGH_FINES_THRESHOLD = 1000.0
LOW_SCORE_THRESHOLD = 70.0

ATTENTION_TIERS = (RiskTier.CRITICAL, RiskTier.HIGH)
BUCKET_BY_TIER = {
    RiskTier.CRITICAL: "critical",
    RiskTier.HIGH: "warning",
    RiskTier.MEDIUM: "info",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def estimate_resolution_cost(violations: Iterable[Violation]) -> float:
    """Rough cost of clearing every open violation."""
    total = 0.0
    for v in violations:
        if not v.is_open:
            continue
        if v.source_authority in PENALTY_SETTLED_AUTHORITIES:
            total += v.penalty_amount or 0.0
        else:
            total += RESOLUTION_COSTS[v.severity_class]
    return round(total, 2)


def last_inspection(violations: Iterable[Violation]) -> datetime | None:
    dates = [v.issued_at for v in violations if v.issued_at is not None]
    return max(dates) if dates else None


def next_inspection(violations: Iterable[Violation]) -> datetime | None:
    """One year after the most recent violation was issued."""
    latest = last_inspection(violations)
    if latest is None:
        return None
    try:
        return latest.replace(year=latest.year + 1)
    except ValueError:
        # Feb 29 → Feb 28
        return latest.replace(year=latest.year + 1, day=28)


def summarize(entry: CacheEntry, directory: BuildingDirectory | None = None) -> BuildingComplianceSummary:
    """Flatten one cache entry into a dashboard row."""
    snapshot = entry.snapshot
    violations = snapshot.violations
    building = directory.get(snapshot.building_id) if directory else None

    open_violations = [v for v in violations if v.is_open]
    return BuildingComplianceSummary(
        building_id=snapshot.building_id,
        name=(building.name if building and building.name else snapshot.building_id),
        address=building.address if building else "",
        score=snapshot.score.score,
        grade=snapshot.score.grade,
        risk_tier=snapshot.score.risk_tier,
        open_violations=len(open_violations),
        critical_violations=sum(1 for v in open_violations if v.severity_class is SeverityClass.CRITICAL),
        total_fines=round(sum(v.penalty_amount or 0.0 for v in violations), 2),
        outstanding_fines=snapshot.exposure.outstanding_fines,
        daily_penalty_rate=snapshot.exposure.daily_penalty_rate,
        estimated_resolution_cost=estimate_resolution_cost(violations),
        last_inspection=last_inspection(violations),
        next_inspection=next_inspection(violations),
        stale=entry.stale,
        failed_sources=list(entry.failed_sources),
        last_successful_at=entry.last_successful_at,
    )


def portfolio_metrics(summaries: list[BuildingComplianceSummary]) -> PortfolioMetrics:
    if not summaries:
        return PortfolioMetrics()

    overall = round(sum(s.score for s in summaries) / len(summaries), 1)
    total_fines = round(sum(s.total_fines for s in summaries), 2)
    outstanding = round(sum(s.outstanding_fines for s in summaries), 2)
    return PortfolioMetrics(
        total_buildings=len(summaries),
        critical_buildings=sum(1 for s in summaries if s.risk_tier is RiskTier.CRITICAL),
        stale_buildings=sum(1 for s in summaries if s.stale),
        overall_score=overall,
        overall_grade=grade_for(overall),
        total_fines=total_fines,
        outstanding_fines=outstanding,
        paid_fines=round(max(0.0, total_fines - outstanding), 2),
        daily_penalty_rate=round(sum(s.daily_penalty_rate for s in summaries), 2),
        estimated_resolution_cost=round(sum(s.estimated_resolution_cost for s in summaries), 2),
    )


def critical_buildings(summaries: list[BuildingComplianceSummary]) -> list[BuildingComplianceSummary]:
    """Buildings in the high or critical tier, worst score first."""
    flagged = [s for s in summaries if s.risk_tier in ATTENTION_TIERS]
    return sorted(flagged, key=lambda s: (s.score, s.building_id))


def compliance_alerts(
    summaries: list[BuildingComplianceSummary],
    now: datetime | None = None,
) -> list[ComplianceAlert]:
    now = now or _utcnow()
    alerts: list[ComplianceAlert] = []

    def alert(s: BuildingComplianceSummary, key: str, type_: str, priority: int, title: str, message: str):
        alerts.append(
            ComplianceAlert(
                id=f"alert-{s.building_id}-{key}",
                type=type_,
                title=title,
                message=message,
                building_id=s.building_id,
                building_name=s.name,
                priority=priority,
                created_at=now,
            )
        )

    for s in summaries:
        if s.critical_violations:
            alert(s, "critical", "critical", 1, "Critical Violations",
                  f"{s.critical_violations} open critical violation(s) require immediate attention")
        if s.outstanding_fines > HIGH_FINES_THRESHOLD:
            alert(s, "fines", "warning", 2, "High Outstanding Fines",
                  f"${s.outstanding_fines:,.2f} in outstanding fines")
        if s.score < LOW_SCORE_THRESHOLD:
            alert(s, "score", "warning", 3, "Low Compliance Score",
                  f"Compliance score {s.score} (grade {s.grade}) is below {LOW_SCORE_THRESHOLD:.0f}")
        if s.stale:
            alert(s, "stale", "info", 4, "Stale Compliance Data",
                  f"Unavailable registries: {', '.join(a.value for a in s.failed_sources)}; "
                  f"last successful refresh {s.last_successful_at.isoformat()}")

    return sorted(alerts, key=lambda a: (a.priority, a.building_id))


def alert_buckets(summaries: list[BuildingComplianceSummary]) -> AlertBuckets:
    buckets = AlertBuckets()
    for s in sorted(summaries, key=lambda s: s.building_id):
        bucket = BUCKET_BY_TIER.get(s.risk_tier)
        if bucket:
            getattr(buckets, bucket).append(s.building_id)
    return buckets


def build_report(
    entries: Iterable[CacheEntry],
    directory: BuildingDirectory | None = None,
    now: datetime | None = None,
) -> PortfolioReport:
    """Assemble the portfolio report from cached snapshots."""
    now = now or _utcnow()
    summaries = [summarize(e, directory) for e in entries]
    report = PortfolioReport(
        generated_at=now,
        metrics=portfolio_metrics(summaries),
        critical_buildings=critical_buildings(summaries),
        alerts=compliance_alerts(summaries, now),
        buckets=alert_buckets(summaries),
    )
    logger.info(
        f"Portfolio report: {report.metrics.total_buildings} building(s), "
        f"{len(report.critical_buildings)} needing attention, {len(report.alerts)} alert(s)"
    )
    return report

"""
Violation Normalizer — Maps per-registry payloads onto the canonical Violation.

Pipeline per record:
1. Validate the raw dict into the authority's record variant
2. Map severity and status vocabularies
3. Skip duplicates by (authority, source record id)

A bad record never aborts the batch: it is logged, counted and skipped.
Unknown status values map to OPEN so an unrecognized state is never dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from pydantic import ValidationError

from fieldops.core.errors import MalformedRecord
from fieldops.models.violation_models import (
    RAW_RECORD_TYPES,
    FireViolationRecord,
    HousingViolationRecord,
    SanitationSummonsRecord,
    ServiceRequestRecord,
    SeverityClass,
    SourceAuthority,
    Violation,
    ViolationStatus,
)

logger = logging.getLogger("fieldops.normalizer")

OPEN = ViolationStatus.OPEN
IN_PROGRESS = ViolationStatus.IN_PROGRESS
RESOLVED = ViolationStatus.RESOLVED

# Status vocabularies, lower-cased. Anything missing here maps to OPEN.
HOUSING_STATUS: dict[str, ViolationStatus] = {
    "open": OPEN,
    "active": OPEN,
    "pending": OPEN,
    "violation open": OPEN,
    "nov sent out": OPEN,
    "in progress": IN_PROGRESS,
    "in_progress": IN_PROGRESS,
    "first no access to re- inspect violation": IN_PROGRESS,
    "resolved": RESOLVED,
    "closed": RESOLVED,
    "close": RESOLVED,
    "violation closed": RESOLVED,
    "violation dismissed": RESOLVED,
    "certified": RESOLVED,
}

SANITATION_STATUS: dict[str, ViolationStatus] = {
    "hearing scheduled": OPEN,
    "defaulted": OPEN,
    "docketed": OPEN,
    "in violation": OPEN,
    "hearing adjourned": IN_PROGRESS,
    "rescheduled": IN_PROGRESS,
    "new issuance": OPEN,
    "paid in full": RESOLVED,
    "dismissed": RESOLVED,
    "not guilty": RESOLVED,
    "written off": RESOLVED,
    "all terms met": RESOLVED,
}

FIRE_STATUS: dict[str, ViolationStatus] = {
    "open": OPEN,
    "in_progress": IN_PROGRESS,
    "in progress": IN_PROGRESS,
    "appealed": IN_PROGRESS,
    "corrected": RESOLVED,
    "dismissed": RESOLVED,
}

SERVICE_REQUEST_STATUS: dict[str, ViolationStatus] = {
    "open": OPEN,
    "submitted": OPEN,
    "pending": OPEN,
    "assigned": IN_PROGRESS,
    "started": IN_PROGRESS,
    "in progress": IN_PROGRESS,
    "in_progress": IN_PROGRESS,
    "closed": RESOLVED,
    "resolved": RESOLVED,
    "cancelled": RESOLVED,
    "duplicate": RESOLVED,
}

HOUSING_CLASS_SEVERITY: dict[str, SeverityClass] = {
    "A": SeverityClass.CRITICAL,
    "B": SeverityClass.HIGH,
    "C": SeverityClass.MEDIUM,
}

FIRE_SEVERITY: dict[str, SeverityClass] = {
    "critical": SeverityClass.CRITICAL,
    "high": SeverityClass.HIGH,
    "medium": SeverityClass.MEDIUM,
    "low": SeverityClass.ADVISORY,
    "informational": SeverityClass.ADVISORY,
}

PRIORITY_SEVERITY: dict[str, SeverityClass] = {
    "critical": SeverityClass.CRITICAL,
    "high": SeverityClass.HIGH,
    "medium": SeverityClass.MEDIUM,
    "low": SeverityClass.ADVISORY,
}

# Service-request complaint types that point at building-safety conditions
HAZARD_KEYWORDS = ("heat", "hot water", "gas", "structural", "electric", "elevator", "fire")

SANITATION_HIGH_PENALTY = 1000.0


def map_status(vocabulary: dict[str, ViolationStatus], *raw: str) -> ViolationStatus:
    """Map the first non-empty raw status; unmapped values fall back to OPEN."""
    for value in raw:
        key = (value or "").strip().lower()
        if key:
            return vocabulary.get(key, OPEN)
    return OPEN


@dataclass
class NormalizationResult:
    """Parseable subset of a batch plus counts of what was skipped."""

    authority: SourceAuthority
    violations: list[Violation] = field(default_factory=list)
    malformed: int = 0
    duplicates: int = 0
    errors: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Per-authority mappers
# ---------------------------------------------------------------------------

def _housing(rec: HousingViolationRecord, building_id: str) -> Violation:
    return Violation(
        id=f"{rec.authority.value}:{rec.record_id}",
        source_authority=rec.authority,
        source_record_id=rec.record_id,
        severity_class=HOUSING_CLASS_SEVERITY.get(
            rec.violation_class.strip().upper(), SeverityClass.ADVISORY
        ),
        description=rec.description,
        penalty_amount=rec.penalty,
        status=map_status(HOUSING_STATUS, rec.current_status),
        issued_at=rec.issued_at,
        building_id=building_id,
    )


def _sanitation(rec: SanitationSummonsRecord, building_id: str) -> Violation:
    severity = SeverityClass.MEDIUM
    if rec.penalty is not None and rec.penalty >= SANITATION_HIGH_PENALTY:
        severity = SeverityClass.HIGH
    status = map_status(SANITATION_STATUS, rec.hearing_status)
    # Settled compliance terms close a summons whatever the hearing said
    if map_status(SANITATION_STATUS, rec.compliance_status) is RESOLVED:
        status = RESOLVED
    return Violation(
        id=f"{rec.authority.value}:{rec.record_id}",
        source_authority=rec.authority,
        source_record_id=rec.record_id,
        severity_class=severity,
        description=rec.description,
        penalty_amount=rec.penalty,
        status=status,
        issued_at=rec.issued_at,
        building_id=building_id,
    )


def _fire(rec: FireViolationRecord, building_id: str) -> Violation:
    severity_key = rec.severity.strip().lower()
    return Violation(
        id=f"{rec.authority.value}:{rec.record_id}",
        source_authority=rec.authority,
        source_record_id=rec.record_id,
        severity_class=FIRE_SEVERITY.get(severity_key, SeverityClass.MEDIUM),
        description=rec.description,
        penalty_amount=rec.penalty,
        status=map_status(FIRE_STATUS, rec.status),
        issued_at=rec.issued_at,
        building_id=building_id,
    )


def _service_request(rec: ServiceRequestRecord, building_id: str) -> Violation:
    severity = PRIORITY_SEVERITY.get(rec.priority.strip().lower())
    if severity is None:
        complaint = rec.complaint_type.lower()
        severity = (
            SeverityClass.HIGH
            if any(k in complaint for k in HAZARD_KEYWORDS)
            else SeverityClass.ADVISORY
        )
    description = " - ".join(p for p in (rec.complaint_type, rec.descriptor) if p)
    return Violation(
        id=f"{rec.authority.value}:{rec.record_id}",
        source_authority=rec.authority,
        source_record_id=rec.record_id,
        severity_class=severity,
        description=description,
        penalty_amount=None,
        status=map_status(SERVICE_REQUEST_STATUS, rec.status),
        issued_at=rec.issued_at,
        building_id=building_id,
    )


MAPPERS: dict[SourceAuthority, Callable[[Any, str], Violation]] = {
    SourceAuthority.HOUSING: _housing,
    SourceAuthority.SANITATION: _sanitation,
    SourceAuthority.FIRE: _fire,
    SourceAuthority.SERVICE_REQUEST: _service_request,
}


def normalize_batch(
    source_authority: SourceAuthority | str,
    raw_records: Iterable[Any],
    building_id: str | None = None,
) -> NormalizationResult:
    """
    Normalize one registry's payload for one building.

    Args:
        source_authority: Registry the records came from
        raw_records: Raw payload dicts as returned by the registry client
        building_id: Building to stamp on every violation. When omitted the
            record's own building reference is used.

    Returns:
        NormalizationResult with the parseable subset and skip counts.
    """
    authority = SourceAuthority(source_authority)
    record_type = RAW_RECORD_TYPES[authority]
    mapper = MAPPERS[authority]
    result = NormalizationResult(authority=authority)
    seen: set[tuple[SourceAuthority, str]] = set()

    for index, raw in enumerate(raw_records or []):
        try:
            if not isinstance(raw, dict):
                raise MalformedRecord(authority.value, f"expected an object, got {type(raw).__name__}")
            record = record_type.model_validate(raw)
            owner = building_id or record.building_ref
            if not owner:
                raise MalformedRecord(authority.value, "no building reference", record.record_id)
            violation = mapper(record, owner)
        except (ValidationError, MalformedRecord) as e:
            result.malformed += 1
            message = str(e) if isinstance(e, MalformedRecord) else (
                f"Malformed {authority.value} record #{index}: {e.error_count()} validation error(s)"
            )
            result.errors.append(message)
            logger.warning(f"Skipping record: {message}")
            continue

        key = (violation.source_authority, violation.source_record_id)
        if key in seen:
            result.duplicates += 1
            logger.debug(f"Duplicate {authority.value} record {violation.source_record_id} dropped")
            continue
        seen.add(key)
        result.violations.append(violation)

    if result.malformed:
        logger.info(
            f"Normalized {len(result.violations)} {authority.value} records "
            f"({result.malformed} malformed, {result.duplicates} duplicates skipped)"
        )
    return result


def normalize(
    source_authority: SourceAuthority | str,
    raw_records: Iterable[Any],
    building_id: str | None = None,
) -> list[Violation]:
    """Normalize a batch and return only the parseable violations."""
    return normalize_batch(source_authority, raw_records, building_id).violations

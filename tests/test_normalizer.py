"""
Tests for Violation Normalizer — vocabulary mapping, malformed records, dedupe.
"""

from datetime import datetime, timezone

from fieldops.core.normalizer import normalize, normalize_batch
from fieldops.models.violation_models import (
    SeverityClass,
    SourceAuthority,
    ViolationStatus,
    parse_penalty,
    parse_timestamp,
)


def test_housing_records_mapped(housing_records):
    violations = normalize(SourceAuthority.HOUSING, housing_records, building_id="bldg-1")

    assert [v.id for v in violations] == ["housing:10001", "housing:10002", "housing:10003"]
    assert [v.severity_class for v in violations] == [
        SeverityClass.CRITICAL,
        SeverityClass.HIGH,
        SeverityClass.MEDIUM,
    ]
    assert [v.status for v in violations] == [
        ViolationStatus.OPEN,
        ViolationStatus.OPEN,
        ViolationStatus.RESOLVED,
    ]
    first = violations[0]
    assert first.penalty_amount == 500.0
    assert first.building_id == "bldg-1"
    assert first.issued_at == datetime(2024, 2, 1, tzinfo=timezone.utc)
    assert violations[1].issued_at == datetime(2024, 2, 3, tzinfo=timezone.utc)
    assert violations[1].source_record_id == "10002"


def test_building_reference_used_when_no_building_given(housing_records):
    violations = normalize("housing", housing_records)
    assert {v.building_id for v in violations} == {"B-77"}


def test_sanitation_severity_and_compliance_override(sanitation_records):
    violations = normalize(SourceAuthority.SANITATION, sanitation_records, "bldg-1")
    by_id = {v.source_record_id: v for v in violations}

    assert by_id["SAN-1"].severity_class == SeverityClass.HIGH
    assert by_id["SAN-1"].status == ViolationStatus.OPEN
    assert by_id["SAN-1"].penalty_amount == 1200.0
    assert by_id["SAN-2"].severity_class == SeverityClass.MEDIUM
    assert by_id["SAN-2"].status == ViolationStatus.RESOLVED


def test_unknown_status_maps_to_open():
    records = [{"violation_id": "F-1", "severity": "high", "status": "Awaiting Reinspection"}]
    [violation] = normalize(SourceAuthority.FIRE, records, "bldg-1")
    assert violation.status == ViolationStatus.OPEN
    assert violation.severity_class == SeverityClass.HIGH


def test_service_request_severity_from_complaint_type():
    records = [
        {"unique_key": 1, "complaint_type": "HEAT/HOT WATER", "descriptor": "ENTIRE BUILDING", "status": "Open"},
        {"unique_key": 2, "complaint_type": "Noise - Residential", "status": "Closed"},
        {"unique_key": 3, "complaint_type": "Noise", "priority": "critical", "status": "Assigned"},
    ]
    violations = normalize(SourceAuthority.SERVICE_REQUEST, records, "bldg-1")

    assert [v.severity_class for v in violations] == [
        SeverityClass.HIGH,
        SeverityClass.ADVISORY,
        SeverityClass.CRITICAL,
    ]
    assert violations[0].description == "HEAT/HOT WATER - ENTIRE BUILDING"
    assert violations[2].status == ViolationStatus.IN_PROGRESS
    assert all(v.penalty_amount is None for v in violations)


def test_malformed_records_skipped_and_counted(housing_records):
    records = [
        housing_records[0],
        {"buildingid": "B-77", "violationclass": "A"},  # no id
        "not a record",
        {"violationid": "10009", "violationclass": "B", "novissueddate": "yesterday-ish"},
        housing_records[1],
    ]
    result = normalize_batch(SourceAuthority.HOUSING, records, building_id="bldg-1")

    assert len(result.violations) == 2
    assert result.malformed == 3
    assert len(result.errors) == 3


def test_record_without_any_building_is_malformed():
    result = normalize_batch(SourceAuthority.FIRE, [{"violation_id": "F-9", "severity": "low"}])
    assert result.violations == []
    assert result.malformed == 1


def test_duplicates_dropped_keeping_first(housing_records):
    duplicate = dict(housing_records[0], currentstatus="VIOLATION CLOSED")
    result = normalize_batch(SourceAuthority.HOUSING, [housing_records[0], duplicate], "bldg-1")

    assert result.duplicates == 1
    assert len(result.violations) == 1
    assert result.violations[0].status == ViolationStatus.OPEN


def test_empty_or_missing_payload():
    assert normalize(SourceAuthority.HOUSING, [], "bldg-1") == []
    assert normalize(SourceAuthority.HOUSING, None, "bldg-1") == []


def test_negative_or_garbled_penalty_is_absent():
    assert parse_penalty("-50") is None
    assert parse_penalty("n/a") is None
    assert parse_penalty("$1,250.50") == 1250.5
    assert parse_penalty(0) == 0.0


def test_naive_timestamps_are_utc():
    parsed = parse_timestamp("2024-05-01T12:30:00")
    assert parsed.tzinfo is not None
    assert parsed == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    assert parse_timestamp("") is None

"""
Test fixtures shared across all FieldOps tests.
"""

import asyncio
import os
from datetime import datetime, timezone

# Keep the test run from appending to ./audit.jsonl; tests that need the
# audit trail build their own AuditLogger on tmp_path.
os.environ.setdefault("AUDIT_ENABLED", "false")

import pytest

from fieldops.models.violation_models import (
    SeverityClass,
    SourceAuthority,
    Violation,
    ViolationStatus,
)


class FakeRegistry:
    """Registry client returning canned payloads, or failing on demand."""

    def __init__(self, records=None, error=None, delay=0.0, gate=None):
        self.records = records or []
        self.error = error
        self.delay = delay
        self.gate = gate
        self.calls = 0
        self.identifiers = []
        self.active = 0
        self.peak = 0

    async def fetch(self, building_identifier):
        self.calls += 1
        self.identifiers.append(building_identifier)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return list(self.records)
        finally:
            self.active -= 1


class PayloadRegistry:
    """Registry client that answers with an arbitrary payload as-is."""

    def __init__(self, payload):
        self.payload = payload

    async def fetch(self, building_identifier):
        return self.payload


class RecordingAllocator:
    def __init__(self):
        self.requests = []

    async def request_reassignment(self, request):
        self.requests.append(request)


class RecordingNotifier:
    def __init__(self):
        self.events = []

    async def notify(self, event):
        self.events.append(event)


@pytest.fixture
def fake_registry():
    return FakeRegistry


@pytest.fixture
def allocator():
    return RecordingAllocator()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_violation():
    """Factory for canonical violations with sensible defaults."""
    counter = {"n": 0}

    def _make(
        severity=SeverityClass.MEDIUM,
        status=ViolationStatus.OPEN,
        penalty=None,
        building_id="bldg-1",
        authority=SourceAuthority.HOUSING,
        issued_at=None,
        record_id=None,
    ):
        counter["n"] += 1
        rid = record_id or f"r{counter['n']}"
        return Violation(
            id=f"{authority.value}:{rid}",
            source_authority=authority,
            source_record_id=rid,
            severity_class=severity,
            description=f"{severity.value} violation",
            penalty_amount=penalty,
            status=status,
            issued_at=issued_at or datetime(2024, 1, 15, tzinfo=timezone.utc),
            building_id=building_id,
        )

    return _make


@pytest.fixture
def housing_records():
    """Housing-registry payload: one per violation class plus a closed one."""
    return [
        {
            "violationid": "10001",
            "buildingid": "B-77",
            "violationclass": "A",
            "currentstatus": "VIOLATION OPEN",
            "novdescription": "Broken smoke detector",
            "novissueddate": "2024-02-01T00:00:00.000",
            "penaltyimposed": "$500.00",
        },
        {
            "violationid": 10002,
            "buildingid": "B-77",
            "violationclass": "B",
            "currentstatus": "NOV SENT OUT",
            "novdescription": "Peeling paint",
            "novissueddate": "02/03/2024",
        },
        {
            "violationid": "10003",
            "buildingid": "B-77",
            "violationclass": "C",
            "currentstatus": "VIOLATION CLOSED",
            "novdescription": "Missing window guard",
        },
    ]


@pytest.fixture
def sanitation_records():
    return [
        {
            "ticket_number": "SAN-1",
            "bbl": "1000010001",
            "hearing_status": "DEFAULTED",
            "charge_1_code_description": "Dirty sidewalk",
            "violation_date": "2024-03-10T00:00:00",
            "penalty_imposed": "1,200.00",
        },
        {
            "ticket_number": "SAN-2",
            "bbl": "1000010001",
            "hearing_status": "HEARING SCHEDULED",
            "compliance_status": "All Terms Met",
            "penalty_imposed": "100",
        },
    ]


@pytest.fixture
def payload_registry():
    return PayloadRegistry

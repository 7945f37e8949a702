"""
Tests for FastAPI routes — read models, refresh commands and operator commands.
"""

import pytest
from fastapi.testclient import TestClient

from fieldops.api.dependencies import (
    get_audit_logger,
    get_directory,
    get_escalation,
    get_refresh_coordinator,
    get_snapshot_cache,
)
from fieldops.audit.logger import AuditLogger
from fieldops.cache.snapshot_cache import InMemorySnapshotCache
from fieldops.core.directory import StaticBuildingDirectory
from fieldops.engine.escalation import EscalationStateMachine
from fieldops.main import app
from fieldops.models.building_models import Building
from fieldops.models.violation_models import SourceAuthority
from fieldops.workers.refresh_worker import RefreshCoordinator

CRITICAL_RECORDS = [
    {"violationid": "1", "violationclass": "A", "currentstatus": "OPEN", "penaltyimposed": "$500"},
    {"violationid": "2", "violationclass": "A", "currentstatus": "OPEN"},
]


@pytest.fixture
def housing_registry(fake_registry):
    return fake_registry(CRITICAL_RECORDS)


@pytest.fixture
def client(tmp_path, housing_registry, allocator, notifier):
    cache = InMemorySnapshotCache()
    audit = AuditLogger(log_path=tmp_path / "audit.jsonl", enabled=True)
    escalation = EscalationStateMachine(
        worker_allocator=allocator, notifier=notifier, audit=audit, hysteresis_cycles=2
    )
    directory = StaticBuildingDirectory(
        [Building(id="tower", name="Tower", address="5 Harbor Rd"), Building(id="annex")]
    )
    coordinator = RefreshCoordinator(
        sources={SourceAuthority.HOUSING: housing_registry},
        cache=cache,
        escalation=escalation,
        directory=directory,
        audit=audit,
        fetch_timeout=1.0,
    )

    app.dependency_overrides[get_snapshot_cache] = lambda: cache
    app.dependency_overrides[get_audit_logger] = lambda: audit
    app.dependency_overrides[get_escalation] = lambda: escalation
    app.dependency_overrides[get_directory] = lambda: directory
    app.dependency_overrides[get_refresh_coordinator] = lambda: coordinator

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["registries"] == ["housing"]
    assert data["interval_refresh"] is False


def test_unrefreshed_building_is_unknown(client):
    for path in ("/buildings/tower/compliance", "/buildings/tower/exposure"):
        response = client.get(path)
        assert response.status_code == 200
        assert response.json()["status"] == "unknown"


def test_refresh_then_read_models(client):
    response = client.post("/refresh", json={"building_ids": ["tower"]})
    assert response.status_code == 200
    data = response.json()
    assert data["stale"] is False
    assert data["results"]["tower"]["status"] == "fresh"

    compliance = client.get("/buildings/tower/compliance").json()
    assert compliance["status"] == "ok"
    assert compliance["score"]["risk_tier"] == "critical"
    assert compliance["score"]["grade"] == "F"

    exposure = client.get("/buildings/tower/exposure", params={"horizon_days": 30}).json()
    assert exposure["exposure"]["outstanding_fines"] == 500.0
    assert exposure["projected_total"] == 500.0 + 500.0 * 30

    clamped = client.get("/buildings/tower/exposure", params={"horizon_days": -5}).json()
    assert clamped["projected_total"] == 500.0
    assert clamped["horizon_days"] == 0.0


def test_empty_refresh_covers_directory(client):
    data = client.post("/refresh", json={}).json()
    assert sorted(data["results"]) == ["annex", "tower"]


def test_emergency_protocol_lifecycle(client, allocator):
    client.post("/refresh", json={"building_ids": ["tower"]})
    status = client.get("/buildings/tower/emergency").json()
    assert status["state"] == "critical"
    assert status["eligible_for_emergency_protocol"] is False

    early = client.post("/buildings/tower/emergency/start", json={"operator": "ops"})
    assert early.status_code == 409

    client.post("/refresh", json={"building_ids": ["tower"]})
    started = client.post("/buildings/tower/emergency/start", json={"operator": "ops"})
    assert started.status_code == 200
    assert started.json()["state"] == "emergency_active"
    assert started.json()["available_actions"] == ["pay_fines", "contact_hpd"]

    blocked = client.post("/buildings/tower/emergency/resolve")
    assert blocked.status_code == 409
    assert blocked.json()["reason"] == "cannot resolve while risk tier is critical"


def test_start_on_normal_building_conflicts(client):
    response = client.post("/buildings/annex/emergency/start")
    assert response.status_code == 409
    assert response.json()["state"] == "normal"


def test_acknowledge_requires_critical(client):
    response = client.post("/buildings/annex/emergency/acknowledge", json={"operator": "ops"})
    assert response.status_code == 409


def test_maintenance_predictions(client):
    routines = [
        {"building_id": "A", "category": "maintenance", "estimated_duration_minutes": 45,
         "requires_photo": i < 2}
        for i in range(6)
    ] + [
        {"building_id": "B", "category": "maintenance", "estimated_duration_minutes": 90}
        for _ in range(2)
    ]
    response = client.post("/maintenance/predictions", json={"routines": routines})
    assert response.status_code == 200
    data = response.json()
    assert [p["building_id"] for p in data] == ["A", "B"]
    assert data[0]["likelihood"] == pytest.approx(0.9)


def test_schedule_start_and_stop(client):
    started = client.post("/refresh/schedule", json={"building_ids": ["tower"], "interval_seconds": 3600})
    assert started.status_code == 200
    assert started.json()["interval_seconds"] == 3600
    assert client.get("/health").json()["interval_refresh"] is True

    stopped = client.delete("/refresh/schedule")
    assert stopped.json() == {"scheduled": False, "stopped": True}


def test_schedule_requires_buildings(client):
    response = client.post("/refresh/schedule", json={"building_ids": []})
    assert response.status_code == 422


def test_recent_audit_entries(client):
    client.post("/refresh", json={"building_ids": ["tower"]})
    entries = client.get("/audit/recent").json()["entries"]
    events = {e["event"] for e in entries}
    assert events == {"refresh", "escalation"}


def test_recent_audit_entries_filtered(client):
    client.post("/refresh", json={"building_ids": ["tower"]})

    escalations = client.get("/audit/recent", params={"event": "escalation"}).json()["entries"]
    assert escalations
    assert {e["event"] for e in escalations} == {"escalation"}

    refreshes = client.get("/audit/recent", params={"event": "refresh", "building_id": "tower"}).json()
    assert [e["status"] for e in refreshes["entries"]] == ["fresh"]

    assert client.get("/audit/recent", params={"building_id": "annex"}).json()["entries"] == []
    assert client.get("/audit/recent", params={"event": "scan"}).status_code == 422


def test_read_models_report_stale_after_registry_outage(client, housing_registry):
    client.post("/refresh", json={"building_ids": ["tower"]})
    fresh = client.get("/buildings/tower/compliance").json()
    assert fresh["status"] == "ok"
    assert fresh["failed_sources"] == []

    housing_registry.error = ConnectionError("registry down")
    replay = client.post("/refresh", json={"building_ids": ["tower"]}).json()
    assert replay["results"]["tower"]["status"] == "stale"

    compliance = client.get("/buildings/tower/compliance").json()
    assert compliance["status"] == "stale"
    assert compliance["failed_sources"] == ["housing"]
    assert compliance["last_successful_at"] == fresh["last_successful_at"]
    assert compliance["score"] == fresh["score"]

    exposure = client.get("/buildings/tower/exposure").json()
    assert exposure["status"] == "stale"
    assert exposure["last_successful_at"] == fresh["last_successful_at"]

    housing_registry.error = None
    client.post("/refresh", json={"building_ids": ["tower"]})
    assert client.get("/buildings/tower/compliance").json()["status"] == "ok"


def test_empty_portfolio(client):
    data = client.get("/portfolio").json()
    assert data["metrics"]["total_buildings"] == 0
    assert data["metrics"]["overall_score"] is None
    assert data["alerts"] == []
    assert data["buckets"] == {"critical": [], "warning": [], "info": []}


def test_portfolio_report(client):
    client.post("/refresh", json={"building_ids": ["tower"]})
    data = client.get("/portfolio").json()

    metrics = data["metrics"]
    assert metrics["total_buildings"] == 1
    assert metrics["critical_buildings"] == 1
    assert metrics["overall_grade"] == "F"
    assert metrics["outstanding_fines"] == 500.0
    assert metrics["estimated_resolution_cost"] == 1000.0

    [building] = data["critical_buildings"]
    assert building["building_id"] == "tower"
    assert building["name"] == "Tower"
    assert building["address"] == "5 Harbor Rd"
    assert building["critical_violations"] == 2
    assert building["next_inspection"] is None

    assert [a["id"] for a in data["alerts"]] == ["alert-tower-critical", "alert-tower-score"]
    assert data["buckets"]["critical"] == ["tower"]

"""
Building Routes — Read models for the field-operations UI and operator commands.

  GET  /buildings/{id}/compliance            → last committed score
  GET  /buildings/{id}/exposure              → fines, accrual, projection
  GET  /buildings/{id}/emergency             → escalation state
  POST /buildings/{id}/emergency/acknowledge → operator intervention
  POST /buildings/{id}/emergency/start       → enter emergency protocol
  POST /buildings/{id}/emergency/resolve     → leave emergency protocol

Buildings that have never been refreshed successfully answer
{"status": "unknown"} instead of a score. When the latest refresh missed a
registry the cached score is served with {"status": "stale"} and the time of
the last successful computation.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from fieldops.api.dependencies import get_escalation, get_snapshot_cache
from fieldops.cache.snapshot_cache import CacheEntry, InMemorySnapshotCache
from fieldops.engine.escalation import EscalationStateMachine
from fieldops.models.emergency_models import EmergencyStatus, OperatorCommand

router = APIRouter(prefix="/buildings", tags=["buildings"])

NO_DATA = "no data available"


@router.get("/{building_id}/compliance")
async def compliance(
    building_id: str,
    cache: InMemorySnapshotCache = Depends(get_snapshot_cache),
):
    entry = cache.entry(building_id)
    if entry is None:
        return {"building_id": building_id, "status": "unknown", "detail": NO_DATA}
    snapshot = entry.snapshot
    return {
        **_freshness(building_id, entry),
        "score": snapshot.score.model_dump(mode="json"),
        "as_of": snapshot.computed_at.isoformat(),
        "sources": {a.value: ts.isoformat() for a, ts in snapshot.source_fetched_at.items()},
    }


@router.get("/{building_id}/exposure")
async def exposure(
    building_id: str,
    horizon_days: float = Query(default=30, description="Projection horizon; negative counts as 0"),
    cache: InMemorySnapshotCache = Depends(get_snapshot_cache),
):
    entry = cache.entry(building_id)
    if entry is None:
        return {"building_id": building_id, "status": "unknown", "detail": NO_DATA}
    snapshot = entry.snapshot
    return {
        **_freshness(building_id, entry),
        "exposure": snapshot.exposure.model_dump(mode="json"),
        "horizon_days": max(0.0, horizon_days),
        "projected_total": snapshot.exposure.projected_total(horizon_days),
    }


@router.get("/{building_id}/emergency", response_model=EmergencyStatus)
async def emergency_status(
    building_id: str,
    escalation: EscalationStateMachine = Depends(get_escalation),
):
    return escalation.status(building_id)


@router.post("/{building_id}/emergency/acknowledge", response_model=EmergencyStatus)
async def acknowledge(
    building_id: str,
    command: OperatorCommand | None = None,
    escalation: EscalationStateMachine = Depends(get_escalation),
):
    return await escalation.acknowledge(building_id, _operator(command))


@router.post("/{building_id}/emergency/start", response_model=EmergencyStatus)
async def start_emergency(
    building_id: str,
    command: OperatorCommand | None = None,
    escalation: EscalationStateMachine = Depends(get_escalation),
):
    return await escalation.start_emergency_protocol(building_id, _operator(command))


@router.post("/{building_id}/emergency/resolve", response_model=EmergencyStatus)
async def resolve_emergency(
    building_id: str,
    command: OperatorCommand | None = None,
    escalation: EscalationStateMachine = Depends(get_escalation),
):
    return await escalation.resolve(building_id, _operator(command))


def _operator(command: OperatorCommand | None) -> str | None:
    return command.operator if command else None


def _freshness(building_id: str, entry: CacheEntry) -> dict:
    """Status is ok when the latest refresh reached every registry, else stale."""
    return {
        "building_id": building_id,
        "status": "stale" if entry.stale else "ok",
        "failed_sources": [a.value for a in entry.failed_sources],
        "last_successful_at": entry.last_successful_at.isoformat(),
        "checked_at": entry.checked_at.isoformat(),
    }

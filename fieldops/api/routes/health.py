"""
Health Check Route — GET /health
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from fieldops.api.dependencies import get_refresh_coordinator, get_snapshot_cache
from fieldops.cache.snapshot_cache import InMemorySnapshotCache
from fieldops.workers.refresh_worker import RefreshCoordinator

router = APIRouter()


@router.get("/health")
async def health(
    cache: InMemorySnapshotCache = Depends(get_snapshot_cache),
    coordinator: RefreshCoordinator = Depends(get_refresh_coordinator),
):
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": "1.0.0",
        "registries": sorted(a.value for a in coordinator.sources),
        "interval_refresh": coordinator.interval_running,
        "cache": cache.stats(),
    }

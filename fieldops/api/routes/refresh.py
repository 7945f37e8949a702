"""
Refresh Routes — "refresh now" and "refresh on interval".

  POST   /refresh           → refresh buildings, wait for per-building outcomes
  POST   /refresh/schedule  → start (or replace) the interval schedule
  DELETE /refresh/schedule  → stop the interval schedule
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from fieldops.api.dependencies import get_directory, get_refresh_coordinator
from fieldops.core.directory import StaticBuildingDirectory
from fieldops.models.refresh_models import RefreshRequest, RefreshResult, ScheduleRequest
from fieldops.workers.refresh_worker import RefreshCoordinator

logger = logging.getLogger("fieldops.api.refresh")

router = APIRouter(prefix="/refresh", tags=["refresh"])


@router.post("", response_model=RefreshResult)
async def refresh_now(
    request: RefreshRequest,
    coordinator: RefreshCoordinator = Depends(get_refresh_coordinator),
    directory: StaticBuildingDirectory = Depends(get_directory),
):
    """
    On-demand refresh.

    An empty building list refreshes every building in the directory.
    """
    building_ids = request.building_ids or directory.building_ids
    return await coordinator.refresh(building_ids, trigger="on_demand")


@router.post("/schedule")
async def start_schedule(
    request: ScheduleRequest,
    coordinator: RefreshCoordinator = Depends(get_refresh_coordinator),
):
    coordinator.start_interval(request.building_ids, request.interval_seconds)
    logger.info(f"Interval refresh scheduled for {len(request.building_ids)} building(s)")
    return {
        "scheduled": True,
        "building_ids": coordinator.scheduled_building_ids,
        "interval_seconds": coordinator.scheduled_interval,
    }


@router.delete("/schedule")
async def stop_schedule(coordinator: RefreshCoordinator = Depends(get_refresh_coordinator)):
    stopped = await coordinator.stop_interval()
    return {"scheduled": False, "stopped": stopped}

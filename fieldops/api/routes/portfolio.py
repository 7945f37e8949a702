"""
Portfolio Route — GET /portfolio
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from fieldops.api.dependencies import get_directory, get_snapshot_cache
from fieldops.cache.snapshot_cache import InMemorySnapshotCache
from fieldops.core.directory import StaticBuildingDirectory
from fieldops.core.portfolio import build_report
from fieldops.models.portfolio_models import PortfolioReport

router = APIRouter(tags=["portfolio"])


@router.get("/portfolio", response_model=PortfolioReport)
async def portfolio(
    cache: InMemorySnapshotCache = Depends(get_snapshot_cache),
    directory: StaticBuildingDirectory = Depends(get_directory),
):
    """Portfolio metrics, buildings needing attention and alerts."""
    return build_report(cache.entries(), directory)

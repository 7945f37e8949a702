"""
Maintenance Route — POST /maintenance/predictions
"""

from __future__ import annotations

from fastapi import APIRouter

from fieldops.core.maintenance_predictor import predict
from fieldops.models.maintenance_models import MaintenancePrediction, PredictionRequest

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.post("/predictions", response_model=list[MaintenancePrediction])
async def predictions(request: PredictionRequest):
    """Rank buildings by maintenance backlog risk."""
    return predict(request.routines, building_id=request.building_id, top_n=request.top_n)

"""
Maintenance Predictor — Ranks buildings by maintenance backlog risk.

Per building (maintenance-category routines only):

    likelihood     = min(0.95, 0.4 + (count / max_count) × 0.5)
    estimated_days = max(2, round(avg_duration_minutes / 45))
    crew_size      = max(1, ceil(count / 3))

The most backlogged building approaches but never reaches certainty, and a
building with a single routine still starts at 0.4.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict

from fieldops.config import settings
from fieldops.models.maintenance_models import (
    ContributingFactor,
    MaintenancePrediction,
    Routine,
)

logger = logging.getLogger("fieldops.predictor")

MAINTENANCE_CATEGORY = "maintenance"
BASE_LIKELIHOOD = 0.4
BACKLOG_WEIGHT = 0.5
MAX_LIKELIHOOD = 0.95
MINUTES_PER_DAY_OF_WORK = 45
MIN_ESTIMATED_DAYS = 2
TASKS_PER_WORKER = 3

# Display importance of each factor; the backlog ratio is the only one that
# moves the likelihood, so it carries the formula's own coefficient.
FACTOR_WEIGHTS: dict[str, float] = {
    "backlog_ratio": BACKLOG_WEIGHT,
    "average_duration_hours": 0.25,
    "photo_required_ratio": 0.25,
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _predict_group(building_id: str, group: list[Routine], max_count: int) -> MaintenancePrediction:
    count = len(group)
    backlog_ratio = count / max_count
    likelihood = min(MAX_LIKELIHOOD, BASE_LIKELIHOOD + backlog_ratio * BACKLOG_WEIGHT)

    avg_minutes = sum(r.estimated_duration_minutes for r in group) / count
    estimated_days = max(MIN_ESTIMATED_DAYS, _round_half_up(avg_minutes / MINUTES_PER_DAY_OF_WORK))

    photo_count = sum(1 for r in group if r.requires_photo)
    crew_size = max(1, math.ceil(count / TASKS_PER_WORKER))
    name = next((r.building_name for r in group if r.building_name), "")

    actions = [
        f"Schedule preventive maintenance within {estimated_days} days",
        f"Assign {crew_size} worker{'s' if crew_size != 1 else ''} to clear "
        f"{count} open maintenance routine{'s' if count != 1 else ''}",
    ]
    if photo_count:
        actions.append(
            f"Capture photo evidence for {photo_count} routine"
            f"{'s' if photo_count != 1 else ''} that require documentation"
        )

    factors = [
        ContributingFactor(
            name="backlog_ratio", value=round(backlog_ratio, 4), weight=FACTOR_WEIGHTS["backlog_ratio"]
        ),
        ContributingFactor(
            name="average_duration_hours",
            value=round(avg_minutes / 60, 4),
            weight=FACTOR_WEIGHTS["average_duration_hours"],
        ),
        ContributingFactor(
            name="photo_required_ratio",
            value=round(photo_count / count, 4),
            weight=FACTOR_WEIGHTS["photo_required_ratio"],
        ),
    ]

    return MaintenancePrediction(
        building_id=building_id,
        building_name=name,
        predicted_issue=f"Maintenance backlog: {count} open routine{'s' if count != 1 else ''}",
        likelihood=round(likelihood, 4),
        estimated_days=estimated_days,
        task_count=count,
        recommended_actions=actions,
        contributing_factors=factors,
    )


def predict(
    routines: list[Routine],
    building_id: str | None = None,
    top_n: int | None = None,
) -> list[MaintenancePrediction]:
    """
    Forecast maintenance risk from the routine backlog.

    Args:
        routines: Backlog across all buildings (non-maintenance rows are ignored)
        building_id: Return only this building's forecast, normalized against
            the whole backlog
        top_n: How many buildings to return (default settings.prediction_top_n)

    Returns:
        Predictions ranked by open routine count, highest first.
    """
    groups: dict[str, list[Routine]] = defaultdict(list)
    for r in routines:
        if r.category.strip().lower() == MAINTENANCE_CATEGORY:
            groups[r.building_id].append(r)

    if not groups:
        return []

    max_count = max(len(g) for g in groups.values())
    predictions = [_predict_group(b, g, max_count) for b, g in groups.items()]
    predictions.sort(key=lambda p: (-p.task_count, -p.likelihood, p.building_id))

    if building_id is not None:
        return [p for p in predictions if p.building_id == building_id]

    limit = top_n if top_n is not None else settings.prediction_top_n
    logger.debug(f"Predicted {len(predictions)} buildings, returning top {limit}")
    return predictions[:limit]

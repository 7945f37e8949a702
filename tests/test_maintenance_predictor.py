"""
Tests for Maintenance Predictor — likelihood, ranking and recommended actions.
"""

import pytest

from fieldops.core.maintenance_predictor import predict
from fieldops.models.maintenance_models import Routine


def _routines(building_id, count, minutes, photos=0, category="maintenance"):
    return [
        Routine(
            building_id=building_id,
            category=category,
            estimated_duration_minutes=minutes,
            requires_photo=i < photos,
            building_name=f"Building {building_id}",
        )
        for i in range(count)
    ]


@pytest.fixture
def backlog():
    return _routines("A", 6, 45, photos=2) + _routines("B", 2, 90)


def test_scenario_likelihood_and_ranking(backlog):
    first, second = predict(backlog)

    assert first.building_id == "A"
    assert first.likelihood == pytest.approx(0.9)
    assert second.building_id == "B"
    assert second.likelihood == pytest.approx(0.4 + (2 / 6) * 0.5, abs=1e-4)


def test_estimated_days_has_floor(backlog):
    predictions = {p.building_id: p for p in predict(backlog)}
    assert predictions["A"].estimated_days == 2
    assert predictions["B"].estimated_days == 2

    [slow] = predict(_routines("C", 1, 400))
    assert slow.estimated_days == 9


def test_recommended_actions(backlog):
    predictions = {p.building_id: p for p in predict(backlog)}

    assert predictions["A"].recommended_actions == [
        "Schedule preventive maintenance within 2 days",
        "Assign 2 workers to clear 6 open maintenance routines",
        "Capture photo evidence for 2 routines that require documentation",
    ]
    assert predictions["B"].recommended_actions == [
        "Schedule preventive maintenance within 2 days",
        "Assign 1 worker to clear 2 open maintenance routines",
    ]


def test_likelihood_never_reaches_certainty():
    [only] = predict(_routines("A", 50, 30))
    assert only.likelihood == pytest.approx(0.9)
    assert only.likelihood < 1.0


def test_non_maintenance_routines_ignored(backlog):
    predictions = predict(backlog + _routines("Z", 20, 30, category="cleaning"))
    assert "Z" not in {p.building_id for p in predictions}


def test_top_n_and_single_building(backlog):
    backlog += _routines("C", 1, 30)
    assert [p.building_id for p in predict(backlog, top_n=2)] == ["A", "B"]

    [only_b] = predict(backlog, building_id="B")
    assert only_b.likelihood == pytest.approx(0.4 + (2 / 6) * 0.5, abs=1e-4)
    assert predict(backlog, building_id="missing") == []


def test_empty_backlog():
    assert predict([]) == []


def test_contributing_factors_explain_prediction(backlog):
    first = predict(backlog)[0]
    factors = {f.name: f for f in first.contributing_factors}
    assert factors["backlog_ratio"].value == 1.0
    assert factors["average_duration_hours"].value == 0.75
    assert factors["photo_required_ratio"].value == pytest.approx(0.3333, abs=1e-4)

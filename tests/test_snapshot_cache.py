"""
Tests for Snapshot Cache — atomic last-known-good storage per building.
"""

from datetime import datetime, timezone

from fieldops.cache.snapshot_cache import InMemorySnapshotCache
from fieldops.core.compliance_scorer import ComplianceScorer
from fieldops.core.exposure import compute_exposure
from fieldops.models.refresh_models import BuildingSnapshot
from fieldops.models.violation_models import SeverityClass, SourceAuthority

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _snapshot(building_id, violations, generation=1):
    return BuildingSnapshot(
        building_id=building_id,
        source_violations={SourceAuthority.HOUSING: violations},
        source_fetched_at={SourceAuthority.HOUSING: NOW},
        score=ComplianceScorer().score(building_id, violations, as_of=NOW),
        exposure=compute_exposure(violations, as_of=NOW),
        computed_at=NOW,
        generation=generation,
    )


def test_put_then_get(make_violation):
    cache = InMemorySnapshotCache()
    snapshot = _snapshot("b1", [make_violation(severity=SeverityClass.HIGH)])
    cache.put(snapshot)

    assert cache.get("b1") is snapshot
    assert cache.get("b2") is None
    assert cache.entry("b1").stale is False
    assert cache.entry("b1").last_successful_at == NOW


def test_put_replaces_whole_snapshot(make_violation):
    cache = InMemorySnapshotCache()
    cache.put(_snapshot("b1", [make_violation(severity=SeverityClass.HIGH)], generation=1))
    newer = _snapshot("b1", [], generation=2)
    cache.put(newer)

    stored = cache.get("b1")
    assert stored.generation == 2
    assert stored.violations == []
    assert stored.score.score == 100.0
    assert [e.snapshot for e in cache.entries()] == [newer]


def test_put_with_failed_sources_is_stale():
    cache = InMemorySnapshotCache()
    cache.put(_snapshot("b1", []), failed_sources=[SourceAuthority.FIRE])

    entry = cache.entry("b1")
    assert entry.stale is True
    assert entry.failed_sources == (SourceAuthority.FIRE,)


def test_mark_stale_keeps_snapshot():
    cache = InMemorySnapshotCache()
    snapshot = _snapshot("b1", [])
    cache.put(snapshot)
    before = cache.entry("b1")

    assert cache.mark_stale("b1", [SourceAuthority.HOUSING, SourceAuthority.FIRE]) is True

    after = cache.entry("b1")
    assert after.snapshot is snapshot
    assert after.stale is True
    assert after.timestamp == before.timestamp
    assert after.checked_at >= before.checked_at

    cache.put(_snapshot("b1", [], generation=2))
    assert cache.entry("b1").stale is False


def test_mark_stale_without_snapshot():
    cache = InMemorySnapshotCache()
    assert cache.mark_stale("b1", [SourceAuthority.HOUSING]) is False
    assert cache.entry("b1") is None


def test_stats_count_stale_entries():
    cache = InMemorySnapshotCache()
    assert cache.stats() == {
        "total_entries": 0,
        "stale_entries": 0,
        "oldest_entry_seconds": None,
        "newest_entry_seconds": None,
    }

    cache.put(_snapshot("b1", []))
    cache.put(_snapshot("b2", []), failed_sources=[SourceAuthority.SANITATION])

    stats = cache.stats()
    assert stats["total_entries"] == 2
    assert stats["stale_entries"] == 1
    assert stats["oldest_entry_seconds"] >= stats["newest_entry_seconds"]

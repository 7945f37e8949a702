"""
Snapshot Cache — Last-known-good building state.

Holds one BuildingSnapshot per building: the per-source violations together
with the score and exposure computed from them. A snapshot is replaced as a
whole, so readers always see a consistent score / violation pairing. Entries
never expire; a stale snapshot is still the best answer when every registry
is down.

Next to the snapshot each entry records how the latest refresh went, so read
models can tell a fresh score from one replayed while registries were failing.
"""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from fieldops.models.refresh_models import BuildingSnapshot
from fieldops.models.violation_models import SourceAuthority


class SnapshotStore(Protocol):
    def get(self, building_id: str) -> BuildingSnapshot | None: ...

    def put(self, snapshot: BuildingSnapshot, failed_sources: Iterable[SourceAuthority] = ()) -> None: ...

    def mark_stale(self, building_id: str, failed_sources: Iterable[SourceAuthority]) -> bool: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry:
    """A cached snapshot plus the outcome of the latest refresh attempt."""

    snapshot: BuildingSnapshot
    failed_sources: tuple[SourceAuthority, ...] = ()
    checked_at: datetime = field(default_factory=_utcnow)
    timestamp: float = field(default_factory=time.time)

    @property
    def stale(self) -> bool:
        return bool(self.failed_sources)

    @property
    def last_successful_at(self) -> datetime:
        return self.snapshot.computed_at

    @property
    def age_seconds(self) -> float:
        return time.time() - self.timestamp


class InMemorySnapshotCache:
    """
    In-memory snapshot store keyed by building id.

    Upgradeable to Redis/SQLite by swapping the storage backend.
    """

    def __init__(self) -> None:
        self._store: dict[str, CacheEntry] = {}

    def get(self, building_id: str) -> BuildingSnapshot | None:
        entry = self._store.get(building_id)
        return entry.snapshot if entry else None

    def entry(self, building_id: str) -> CacheEntry | None:
        return self._store.get(building_id)

    def entries(self) -> list[CacheEntry]:
        return list(self._store.values())

    def put(self, snapshot: BuildingSnapshot, failed_sources: Iterable[SourceAuthority] = ()) -> None:
        """Replace the building's snapshot in a single assignment."""
        self._store[snapshot.building_id] = CacheEntry(
            snapshot=snapshot,
            failed_sources=tuple(failed_sources),
        )

    def mark_stale(self, building_id: str, failed_sources: Iterable[SourceAuthority]) -> bool:
        """
        Record a refresh that could not replace the snapshot.

        The snapshot and its age are kept. Returns whether the building had one.
        """
        entry = self._store.get(building_id)
        if entry is None:
            return False
        self._store[building_id] = dataclasses.replace(
            entry, failed_sources=tuple(failed_sources), checked_at=_utcnow()
        )
        return True

    def stats(self) -> dict[str, Any]:
        ages = [e.age_seconds for e in self._store.values()]
        return {
            "total_entries": len(self._store),
            "stale_entries": sum(1 for e in self._store.values() if e.stale),
            "oldest_entry_seconds": round(max(ages), 1) if ages else None,
            "newest_entry_seconds": round(min(ages), 1) if ages else None,
        }

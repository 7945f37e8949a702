"""
Building Directory — Resolves the identifier each registry knows a building by.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from fieldops.models.building_models import Building
from fieldops.models.violation_models import SourceAuthority


class BuildingDirectory(Protocol):
    def get(self, building_id: str) -> Building | None: ...

    def identifier_for(self, building_id: str, authority: SourceAuthority) -> str: ...


class StaticBuildingDirectory:
    """
    In-memory directory built from Building records.

    Buildings without an identifier for a registry fall back to their own id.
    """

    def __init__(self, buildings: Iterable[Building] = ()) -> None:
        self._buildings: dict[str, Building] = {b.id: b for b in buildings}

    def get(self, building_id: str) -> Building | None:
        return self._buildings.get(building_id)

    def identifier_for(self, building_id: str, authority: SourceAuthority) -> str:
        building = self.get(building_id)
        if building is None:
            return building_id
        return building.registry_ids.get(authority, building_id)

    @property
    def building_ids(self) -> list[str]:
        return list(self._buildings)

"""
Building Data Model — Identity and per-registry identifiers.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from fieldops.models.violation_models import SourceAuthority


class Building(BaseModel):
    """A managed building. Identity fields are immutable."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    address: str = ""
    latitude: float | None = None
    longitude: float | None = None
    client_id: str | None = None
    registry_ids: dict[SourceAuthority, str] = Field(
        default_factory=dict,
        description="Opaque identifier per registry (e.g. BBL for housing, BIN for fire)",
    )

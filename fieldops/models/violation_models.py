"""
Violation Data Models — Canonical violation shape and raw registry variants.

Each registry returns its own payload vocabulary. Raw payloads are validated
into one explicit variant per authority, then mapped onto the canonical
`Violation` by the normalizer.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class SourceAuthority(str, Enum):
    HOUSING = "housing"
    SANITATION = "sanitation"
    FIRE = "fire"
    SERVICE_REQUEST = "service-request"


class SeverityClass(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    ADVISORY = "advisory"


class ViolationStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"


OPEN_STATUSES = frozenset({ViolationStatus.OPEN, ViolationStatus.IN_PROGRESS})


class Violation(BaseModel):
    """A normalized violation record. Only `status` ever changes."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Canonical id, '<authority>:<source record id>'")
    source_authority: SourceAuthority
    source_record_id: str
    severity_class: SeverityClass
    description: str = ""
    penalty_amount: float | None = Field(default=None, ge=0)
    status: ViolationStatus = ViolationStatus.OPEN
    issued_at: datetime | None = None
    building_id: str

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def with_status(self, status: ViolationStatus) -> Violation:
        """Return a copy carrying a new status."""
        return self.model_copy(update={"status": status})


# ---------------------------------------------------------------------------
# Parsing helpers shared by the raw variants
# ---------------------------------------------------------------------------

_DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%Y %I:%M:%S %p", "%Y%m%d")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a registry date (ISO-8601 or MM/DD/YYYY). Naive values are UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            for fmt in _DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
            else:
                raise ValueError(f"unrecognized date: {text!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_penalty(value: Any) -> float | None:
    """Parse '$1,250.00'-style amounts. Unparseable or negative → None."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        amount = float(value)
    else:
        cleaned = re.sub(r"[,$\s]", "", str(value))
        try:
            amount = float(cleaned)
        except ValueError:
            return None
    if amount < 0:
        return None
    return amount


class _RawRecord(BaseModel):
    """Base for registry payloads: tolerant of extra fields, strict on ids."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("record_id", mode="before", check_fields=False)
    @classmethod
    def _id_to_str(cls, v: Any) -> Any:
        if isinstance(v, (int, float)):
            return str(v)
        if isinstance(v, str):
            v = v.strip()
        return v

    @field_validator("issued_at", mode="before", check_fields=False)
    @classmethod
    def _parse_issued(cls, v: Any) -> datetime | None:
        return parse_timestamp(v)

    @field_validator("penalty", mode="before", check_fields=False)
    @classmethod
    def _parse_penalty(cls, v: Any) -> float | None:
        return parse_penalty(v)


class HousingViolationRecord(_RawRecord):
    """Housing-authority violation (HPD open-data field names)."""

    authority: Literal[SourceAuthority.HOUSING] = SourceAuthority.HOUSING
    record_id: str = Field(..., min_length=1, validation_alias=AliasChoices("violationid", "record_id"))
    building_ref: str | None = Field(default=None, validation_alias=AliasChoices("buildingid", "bbl"))
    violation_class: str = Field(default="", validation_alias=AliasChoices("violationclass", "class"))
    current_status: str = Field(default="", validation_alias=AliasChoices("currentstatus", "violationstatus"))
    description: str = Field(default="", validation_alias=AliasChoices("novdescription", "description"))
    issued_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("novissueddate", "inspectiondate")
    )
    penalty: float | None = Field(default=None, validation_alias=AliasChoices("penaltyimposed", "penalty"))


class SanitationSummonsRecord(_RawRecord):
    """Sanitation summons from the administrative-hearings case registry."""

    authority: Literal[SourceAuthority.SANITATION] = SourceAuthority.SANITATION
    record_id: str = Field(..., min_length=1, validation_alias=AliasChoices("ticket_number", "case_number"))
    building_ref: str | None = Field(default=None, validation_alias=AliasChoices("bbl", "bin"))
    hearing_status: str = Field(default="", validation_alias=AliasChoices("hearing_status", "status"))
    compliance_status: str = ""
    description: str = Field(
        default="", validation_alias=AliasChoices("charge_1_code_description", "description")
    )
    issued_at: datetime | None = Field(default=None, validation_alias=AliasChoices("violation_date"))
    penalty: float | None = Field(
        default=None, validation_alias=AliasChoices("penalty_imposed", "fine_amount")
    )


class FireViolationRecord(_RawRecord):
    """Fire-safety authority violation."""

    authority: Literal[SourceAuthority.FIRE] = SourceAuthority.FIRE
    record_id: str = Field(..., min_length=1, validation_alias=AliasChoices("violation_id", "id"))
    building_ref: str | None = Field(default=None, validation_alias=AliasChoices("bin", "building_id"))
    severity: str = ""
    status: str = ""
    description: str = Field(default="", validation_alias=AliasChoices("violation_description", "description"))
    issued_at: datetime | None = Field(default=None, validation_alias=AliasChoices("issued_date", "issued_at"))
    penalty: float | None = Field(default=None, validation_alias=AliasChoices("penalty_amount", "penalty"))


class ServiceRequestRecord(_RawRecord):
    """General service request (311-style complaint)."""

    authority: Literal[SourceAuthority.SERVICE_REQUEST] = SourceAuthority.SERVICE_REQUEST
    record_id: str = Field(..., min_length=1, validation_alias=AliasChoices("unique_key", "id"))
    building_ref: str | None = Field(default=None, validation_alias=AliasChoices("bbl", "building_id"))
    complaint_type: str = ""
    descriptor: str = ""
    priority: str = ""
    status: str = ""
    issued_at: datetime | None = Field(default=None, validation_alias=AliasChoices("created_date", "issued_at"))


RAW_RECORD_TYPES: dict[SourceAuthority, type[_RawRecord]] = {
    SourceAuthority.HOUSING: HousingViolationRecord,
    SourceAuthority.SANITATION: SanitationSummonsRecord,
    SourceAuthority.FIRE: FireViolationRecord,
    SourceAuthority.SERVICE_REQUEST: ServiceRequestRecord,
}

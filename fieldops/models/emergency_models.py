"""
Emergency Escalation Models — States, events and read models.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from fieldops.models.compliance_models import RiskTier


class EmergencyState(str, Enum):
    NORMAL = "normal"
    ELEVATED = "elevated"
    CRITICAL = "critical"
    EMERGENCY_ACTIVE = "emergency_active"


# UI actions unlocked while a building is in emergency mode
EMERGENCY_ACTIONS: tuple[str, ...] = ("pay_fines", "contact_hpd")


class EscalationEvent(BaseModel):
    """Emitted to the notification collaborator on every state change."""

    building_id: str
    from_state: EmergencyState
    to_state: EmergencyState
    at: datetime
    reason: str = ""
    operator: str | None = None


class ReassignmentRequest(BaseModel):
    """Sent to the worker-allocation collaborator when emergency mode starts."""

    building_id: str
    urgency: Literal["emergency"] = "emergency"
    requested_at: datetime


class EmergencyStatus(BaseModel):
    """Read model of one building's escalation state."""

    building_id: str
    state: EmergencyState = EmergencyState.NORMAL
    consecutive_critical_cycles: int = 0
    eligible_for_emergency_protocol: bool = False
    operator_acknowledged: bool = False
    last_risk_tier: RiskTier | None = None
    entered_state_at: datetime | None = None
    available_actions: list[str] = Field(default_factory=list)


class OperatorCommand(BaseModel):
    """Request body for operator-issued emergency commands."""

    operator: str | None = Field(default=None, description="Operator issuing the command")


class EscalationAuditEntry(EscalationEvent):
    """Audit record for one escalation state change."""

    event: Literal["escalation"] = "escalation"

"""
Emergency Escalation State Machine — Per-building operating mode.

    NORMAL ⇄ ELEVATED ⇄ CRITICAL ──start_emergency_protocol──▶ EMERGENCY_ACTIVE
                                                                     │
    NORMAL ◀─────────────────────────── resolve ─────────────────────┘

Transitions on each refresh cycle (evaluate):
- critical tier            → CRITICAL (consecutive cycle counter increments)
- high tier                → ELEVATED
- low / medium tier        → NORMAL
- while EMERGENCY_ACTIVE   → only the latest tier is recorded

EMERGENCY_ACTIVE is never entered automatically. The operator command
start_emergency_protocol is accepted only after the building has been critical
for `hysteresis_cycles` consecutive cycles without operator acknowledgement,
so a single noisy cycle can never start an emergency. Leaving it requires
resolve, which is rejected while the latest risk tier is still critical.

All commands for one building are serialized by a per-building lock.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable

from fieldops.audit.logger import AuditLogger
from fieldops.config import settings
from fieldops.core.errors import InvalidTransition
from fieldops.engine.collaborators import (
    LoggingNotifier,
    LoggingWorkerAllocator,
    Notifier,
    WorkerAllocator,
)
from fieldops.models.compliance_models import RiskTier
from fieldops.models.emergency_models import (
    EMERGENCY_ACTIONS,
    EmergencyState,
    EmergencyStatus,
    EscalationAuditEntry,
    EscalationEvent,
    ReassignmentRequest,
)

logger = logging.getLogger("fieldops.escalation")

NORMAL = EmergencyState.NORMAL
ELEVATED = EmergencyState.ELEVATED
CRITICAL = EmergencyState.CRITICAL
EMERGENCY_ACTIVE = EmergencyState.EMERGENCY_ACTIVE


@dataclass
class _Escalation:
    state: EmergencyState = NORMAL
    consecutive_critical: int = 0
    acknowledged_by: str | None = None
    last_risk_tier: RiskTier | None = None
    entered_at: datetime | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EscalationStateMachine:
    """Owns EmergencyState for every building; commands are the only writers."""

    def __init__(
        self,
        worker_allocator: WorkerAllocator | None = None,
        notifier: Notifier | None = None,
        audit: AuditLogger | None = None,
        hysteresis_cycles: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.worker_allocator = worker_allocator or LoggingWorkerAllocator()
        self.notifier = notifier or LoggingNotifier()
        self.audit = audit
        self.hysteresis_cycles = (
            hysteresis_cycles if hysteresis_cycles is not None else settings.escalation_hysteresis_cycles
        )
        self._clock = clock
        self._records: dict[str, _Escalation] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._pending: set[asyncio.Task] = set()

    # ── Queries ──

    def state(self, building_id: str) -> EmergencyState:
        record = self._records.get(building_id)
        return record.state if record else NORMAL

    def status(self, building_id: str) -> EmergencyStatus:
        return self._status(building_id, self._records.get(building_id) or _Escalation())

    def is_eligible(self, building_id: str) -> bool:
        record = self._records.get(building_id)
        return record is not None and self._eligible(record)

    # ── Commands ──

    async def evaluate(self, building_id: str, risk_tier: RiskTier) -> EmergencyState:
        """Apply one refresh cycle's risk tier."""
        async with self._lock(building_id):
            record = self._record(building_id)
            record.last_risk_tier = risk_tier

            if record.state is EMERGENCY_ACTIVE:
                return record.state

            if risk_tier is RiskTier.CRITICAL:
                if record.state is CRITICAL:
                    record.consecutive_critical += 1
                else:
                    record.consecutive_critical = 1
                    record.acknowledged_by = None
                    self._transition(building_id, record, CRITICAL, "risk tier is critical")
                if record.consecutive_critical == self.hysteresis_cycles and self._eligible(record):
                    logger.warning(
                        f"[{building_id}] Critical for {record.consecutive_critical} consecutive "
                        f"cycles, emergency protocol available"
                    )
            else:
                record.consecutive_critical = 0
                record.acknowledged_by = None
                target = ELEVATED if risk_tier is RiskTier.HIGH else NORMAL
                if record.state is not target:
                    self._transition(building_id, record, target, f"risk tier is {risk_tier.value}")

            return record.state

    async def acknowledge(self, building_id: str, operator: str | None = None) -> EmergencyStatus:
        """Record operator intervention on a critical building."""
        async with self._lock(building_id):
            record = self._record(building_id)
            if record.state is not CRITICAL:
                raise InvalidTransition(
                    building_id, record.state.value, "acknowledge", "only a critical building can be acknowledged"
                )
            record.acknowledged_by = operator or "operator"
            logger.info(f"[{building_id}] Critical state acknowledged by {record.acknowledged_by}")
            return self._status(building_id, record)

    async def start_emergency_protocol(
        self, building_id: str, operator: str | None = None
    ) -> EmergencyStatus:
        """Enter EMERGENCY_ACTIVE, reassign workers and notify."""
        async with self._lock(building_id):
            record = self._record(building_id)
            action = "start emergency protocol for"

            if record.state is EMERGENCY_ACTIVE:
                raise InvalidTransition(building_id, record.state.value, action, "emergency protocol already active")
            if record.state is not CRITICAL:
                raise InvalidTransition(building_id, record.state.value, action, "risk tier is not critical")
            if record.consecutive_critical < self.hysteresis_cycles:
                raise InvalidTransition(
                    building_id,
                    record.state.value,
                    action,
                    f"critical for {record.consecutive_critical} of "
                    f"{self.hysteresis_cycles} required consecutive refresh cycles",
                )
            if record.acknowledged_by:
                raise InvalidTransition(
                    building_id, record.state.value, action, f"operator {record.acknowledged_by} has intervened"
                )

            self._transition(
                building_id, record, EMERGENCY_ACTIVE, "emergency protocol started", operator
            )
            request = ReassignmentRequest(building_id=building_id, requested_at=self._clock())
            self._fire_and_forget(
                self.worker_allocator.request_reassignment(request),
                f"[{building_id}] worker reassignment",
            )
            return self._status(building_id, record)

    async def resolve(self, building_id: str, operator: str | None = None) -> EmergencyStatus:
        """Leave EMERGENCY_ACTIVE once the risk tier is no longer critical."""
        async with self._lock(building_id):
            record = self._record(building_id)
            if record.state is not EMERGENCY_ACTIVE:
                raise InvalidTransition(building_id, record.state.value, "resolve", "no active emergency")
            if record.last_risk_tier is RiskTier.CRITICAL:
                raise InvalidTransition(
                    building_id, record.state.value, "resolve", "cannot resolve while risk tier is critical"
                )
            record.consecutive_critical = 0
            record.acknowledged_by = None
            self._transition(building_id, record, NORMAL, "emergency resolved", operator)
            return self._status(building_id, record)

    async def drain(self) -> None:
        """Wait for outstanding collaborator dispatches."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # ── Internals ──

    def _lock(self, building_id: str) -> asyncio.Lock:
        return self._locks.setdefault(building_id, asyncio.Lock())

    def _record(self, building_id: str) -> _Escalation:
        return self._records.setdefault(building_id, _Escalation())

    def _eligible(self, record: _Escalation) -> bool:
        return (
            record.state is CRITICAL
            and record.consecutive_critical >= self.hysteresis_cycles
            and not record.acknowledged_by
        )

    def _status(self, building_id: str, record: _Escalation) -> EmergencyStatus:
        return EmergencyStatus(
            building_id=building_id,
            state=record.state,
            consecutive_critical_cycles=record.consecutive_critical,
            eligible_for_emergency_protocol=self._eligible(record),
            operator_acknowledged=bool(record.acknowledged_by),
            last_risk_tier=record.last_risk_tier,
            entered_state_at=record.entered_at,
            available_actions=list(EMERGENCY_ACTIONS) if record.state is EMERGENCY_ACTIVE else [],
        )

    def _transition(
        self,
        building_id: str,
        record: _Escalation,
        to_state: EmergencyState,
        reason: str,
        operator: str | None = None,
    ) -> None:
        event = EscalationEvent(
            building_id=building_id,
            from_state=record.state,
            to_state=to_state,
            at=self._clock(),
            reason=reason,
            operator=operator,
        )
        record.state = to_state
        record.entered_at = event.at
        logger.info(f"[{building_id}] {event.from_state.value} → {to_state.value} ({reason})")

        if self.audit:
            self.audit.log(EscalationAuditEntry(**event.model_dump()))
        self._fire_and_forget(self.notifier.notify(event), f"[{building_id}] escalation notification")

    def _fire_and_forget(self, call: Awaitable[None], label: str) -> None:
        task = asyncio.get_running_loop().create_task(self._guarded(call, label))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @staticmethod
    async def _guarded(call: Awaitable[None], label: str) -> None:
        try:
            await call
        except Exception:
            logger.exception(f"{label} failed")

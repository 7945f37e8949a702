"""
Outbound collaborators — Worker allocation and escalation notifications.

The engine only depends on the protocols. The logging implementations are
the defaults wired in when no real integration is configured.
"""

from __future__ import annotations

import logging
from typing import Protocol

from fieldops.models.emergency_models import EscalationEvent, ReassignmentRequest

logger = logging.getLogger("fieldops.collaborators")


class WorkerAllocator(Protocol):
    async def request_reassignment(self, request: ReassignmentRequest) -> None: ...


class Notifier(Protocol):
    async def notify(self, event: EscalationEvent) -> None: ...


class LoggingWorkerAllocator:
    """Logs reassignment requests instead of dispatching them."""

    async def request_reassignment(self, request: ReassignmentRequest) -> None:
        logger.warning(
            f"[{request.building_id}] Worker reassignment requested (urgency={request.urgency})"
        )


class LoggingNotifier:
    """Logs escalation events instead of delivering them."""

    async def notify(self, event: EscalationEvent) -> None:
        logger.info(
            f"[{event.building_id}] {event.from_state.value} → {event.to_state.value}"
            + (f": {event.reason}" if event.reason else "")
        )

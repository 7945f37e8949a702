"""
FastAPI Dependencies — Shared singletons injected via Depends().
"""

from __future__ import annotations

from functools import lru_cache

from fieldops.audit.logger import AuditLogger
from fieldops.cache.snapshot_cache import InMemorySnapshotCache
from fieldops.core.compliance_scorer import ComplianceScorer
from fieldops.core.directory import StaticBuildingDirectory
from fieldops.engine.escalation import EscalationStateMachine
from fieldops.models.violation_models import SourceAuthority
from fieldops.workers.refresh_worker import RefreshCoordinator, RegistryClient


@lru_cache
def get_snapshot_cache() -> InMemorySnapshotCache:
    """Shared last-known-good snapshot cache."""
    return InMemorySnapshotCache()


@lru_cache
def get_audit_logger() -> AuditLogger:
    """Shared audit logger singleton."""
    return AuditLogger()


@lru_cache
def get_scorer() -> ComplianceScorer:
    return ComplianceScorer()


@lru_cache
def get_escalation() -> EscalationStateMachine:
    """Shared escalation state machine (logging collaborators by default)."""
    return EscalationStateMachine(audit=get_audit_logger())


@lru_cache
def get_directory() -> StaticBuildingDirectory:
    return StaticBuildingDirectory()


@lru_cache
def get_registry_clients() -> dict[SourceAuthority, RegistryClient]:
    """Registry clients are injected by the deployment; none ship by default."""
    return {}


@lru_cache
def get_refresh_coordinator() -> RefreshCoordinator:
    """Shared refresh coordinator singleton."""
    return RefreshCoordinator(
        sources=get_registry_clients(),
        cache=get_snapshot_cache(),
        scorer=get_scorer(),
        escalation=get_escalation(),
        directory=get_directory(),
        audit=get_audit_logger(),
    )

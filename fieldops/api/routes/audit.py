"""
Audit Route — GET /audit/recent
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query

from fieldops.api.dependencies import get_audit_logger
from fieldops.audit.logger import AuditLogger

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/recent")
async def recent(
    count: int = Query(default=50, ge=1, le=1000),
    event: Literal["refresh", "escalation"] | None = None,
    building_id: str | None = None,
    audit: AuditLogger = Depends(get_audit_logger),
):
    return {"entries": audit.read_recent(count, event=event, building_id=building_id)}

"""
Audit Logger — Structured JSON-lines audit trail.

Records every building refresh (status, score, failed sources, malformed
record count, duration) and every escalation state change.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

from pydantic import BaseModel

from fieldops.config import settings

logger = logging.getLogger("fieldops.audit")


class AuditLogger:
    """Writes structured audit entries to a JSON-lines file."""

    def __init__(self, log_path: str | Path | None = None, enabled: bool | None = None) -> None:
        self.log_path = Path(log_path or settings.audit_log_path)
        self.enabled = settings.audit_enabled if enabled is None else enabled

    def log(self, entry: BaseModel) -> None:
        """Append an audit entry to the log file."""
        if not self.enabled:
            return

        record = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            **entry.model_dump(mode="json"),
        }

        try:
            with open(self.log_path, "a") as f:
                f.write(json.dumps(record) + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit log: {e}")

    def read_recent(
        self,
        count: int = 50,
        event: str | None = None,
        building_id: str | None = None,
    ) -> list[dict]:
        """
        Read the most recent N audit entries, oldest first.

        `event` ("refresh" or "escalation") and `building_id` narrow the trail
        before the last N are taken.
        """
        if not self.log_path.exists():
            return []

        entries: list[dict] = []
        try:
            with open(self.log_path) as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        record = json.loads(line)
                    except json.JSONDecodeError:
                        logger.warning(f"Skipping unreadable audit line in {self.log_path}")
                        continue
                    if event and record.get("event") != event:
                        continue
                    if building_id and record.get("building_id") != building_id:
                        continue
                    entries.append(record)
        except OSError as e:
            logger.error(f"Failed to read audit log: {e}")
            return []

        return entries[-count:] if count > 0 else []

"""Audit trail for alert actions.

Operators raise manual alerts and move alerts through their lifecycle
(investigating, resolved, dismissed). Each of these actions is appended
to a JSONL file with a timestamp, the actor and the before/after state,
so incident handling can be reviewed later.

The audit trail is kept apart from the crowd data store: it is written
for people, not queried by the aggregators.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from schemas import Alert


class AuditLogger:
    """Records alert actions to ``audit.jsonl`` inside ``log_dir``."""

    def __init__(self, log_dir: Optional[str | Path] = None) -> None:
        self.log_dir = Path(log_dir) if log_dir else Path("logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = self.log_dir / "audit.jsonl"
        self._lock = threading.Lock()

    def log_action(self, action_type: str, details: Dict[str, Any]) -> None:
        """Append an audit record to the log.

        Parameters
        ----------
        action_type : str
            The high-level category of the action (e.g. `alert_status_changed`).
        details : dict
            JSON-serialisable information about the action.
        """
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action_type": action_type,
            "details": details,
        }
        with self._lock, self.log_file.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record) + "\n")

    def log_alert_created(self, alert: Alert) -> None:
        self.log_action("alert_created", {"alert": alert.to_dict(), "actor": alert.created_by})

    def log_status_change(self, before: Alert, after: Alert, actor: Optional[str] = None) -> None:
        self.log_action(
            "alert_status_changed",
            {
                "alert_id": after.id,
                "from": before.status.value,
                "to": after.status.value,
                "actor": actor,
            },
        )

    def read_records(self) -> List[Dict[str, Any]]:
        """Return every record written so far, skipping corrupt lines."""
        records: List[Dict[str, Any]] = []
        if not self.log_file.exists():
            return records
        with self.log_file.open("r", encoding="utf-8") as f:
            for line in f:
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
        return records

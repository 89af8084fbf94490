"""Storage package.

This package persists crowd readings, alerts and the location/camera
registry. The default backend is SQLite (`CrowdDataStore`); alert
actions taken by operators are additionally written to a JSONL audit
trail (`AuditLogger`).
"""

from .audit_logger import AuditLogger
from .database_store import CrowdDataStore

__all__ = ["AuditLogger", "CrowdDataStore"]

"""Alert record and its lifecycle vocabulary."""

from __future__ import annotations

from dataclasses import dataclass, asdict, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"

    @property
    def is_terminal(self) -> bool:
        return self in (AlertStatus.RESOLVED, AlertStatus.DISMISSED)


class TriggerSource(str, Enum):
    MANUAL = "manual"
    CROWD_DENSITY = "crowd_density"


# Terminal states have no outgoing edges.
ALLOWED_TRANSITIONS: Dict[AlertStatus, FrozenSet[AlertStatus]] = {
    AlertStatus.ACTIVE: frozenset(
        {AlertStatus.INVESTIGATING, AlertStatus.RESOLVED, AlertStatus.DISMISSED}
    ),
    AlertStatus.INVESTIGATING: frozenset({AlertStatus.RESOLVED, AlertStatus.DISMISSED}),
    AlertStatus.RESOLVED: frozenset(),
    AlertStatus.DISMISSED: frozenset(),
}


@dataclass(frozen=True)
class Alert:
    """
    Alert raised for operators, either by the crowd density engine or by
    a person.

    Attributes
    ----------
    id             : str
        Identifier assigned on creation.
    title          : str
        Short human-readable headline.
    description    : str
        Longer message for the operator.
    severity       : Severity
        One of low / medium / high / critical.
    location_id    : str or None
        Location the alert refers to.
    camera_id      : str or None
        Camera whose reading triggered the alert, if any.
    trigger_source : TriggerSource
        ``manual`` or ``crowd_density``; part of the dedup key.
    crowd_count    : int or None
        Person count that triggered a crowd density alert.
    status         : AlertStatus
        Lifecycle state; created ``active``.
    created_at     : datetime
        Creation time (timezone-aware).
    resolved_at    : datetime or None
        Stamped when the alert moves to ``resolved``.
    created_by     : str or None
        Operator who raised a manual alert.
    """

    id: str
    title: str
    description: str
    severity: Severity
    location_id: Optional[str]
    trigger_source: TriggerSource
    created_at: datetime
    camera_id: Optional[str] = None
    crowd_count: Optional[int] = None
    status: AlertStatus = AlertStatus.ACTIVE
    resolved_at: Optional[datetime] = None
    created_by: Optional[str] = None

    def can_transition_to(self, status: AlertStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self.status]

    def with_status(self, status: AlertStatus, at: datetime) -> "Alert":
        resolved_at = at if status is AlertStatus.RESOLVED else self.resolved_at
        return replace(self, status=status, resolved_at=resolved_at)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["trigger_source"] = self.trigger_source.value
        data["status"] = self.status.value
        data["created_at"] = self.created_at.isoformat()
        data["resolved_at"] = self.resolved_at.isoformat() if self.resolved_at else None
        return data

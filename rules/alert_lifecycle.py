"""Alert lifecycle management.

Alerts are created ``active`` and move forward only:

    active -> investigating -> resolved | dismissed
    active -> resolved | dismissed

``resolved`` and ``dismissed`` are terminal. Moving to ``resolved``
stamps ``resolved_at``. Once a crowd density incident is closed, the
next qualifying reading for that location opens a fresh one.

The `AlertManager` also raises manual alerts on behalf of operators and
lists alerts for display. Every manual creation and status change is
written to the audit trail when one is configured.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from schemas import (
    Alert,
    AlertStatus,
    InvalidTransitionError,
    NotFoundError,
    Severity,
    TriggerSource,
    ValidationError,
)
from storage.audit_logger import AuditLogger
from storage.database_store import CrowdDataStore, new_id, utc_now

logger = logging.getLogger(__name__)


def parse_status(value: str | AlertStatus) -> AlertStatus:
    if isinstance(value, AlertStatus):
        return value
    if not value:
        raise ValidationError("Status is required")
    try:
        return AlertStatus(str(value).lower())
    except ValueError:
        allowed = ", ".join(s.value for s in AlertStatus)
        raise ValidationError(f"Unknown alert status '{value}'. Expected one of: {allowed}") from None


def parse_severity(value: str | Severity) -> Severity:
    if isinstance(value, Severity):
        return value
    if not value:
        raise ValidationError("Severity is required")
    try:
        return Severity(str(value).lower())
    except ValueError:
        allowed = ", ".join(s.value for s in Severity)
        raise ValidationError(f"Unknown severity '{value}'. Expected one of: {allowed}") from None


class AlertManager:
    """Create, list and transition alerts."""

    def __init__(
        self,
        store: CrowdDataStore,
        audit: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.audit = audit
        self.clock = clock

    def create_manual_alert(
        self,
        title: str,
        description: str,
        severity: str | Severity,
        location_id: Optional[str] = None,
        camera_id: Optional[str] = None,
        trigger_source: str | TriggerSource = TriggerSource.MANUAL,
        created_by: Optional[str] = None,
    ) -> Alert:
        """Raise an alert on behalf of an operator.

        Raises
        ------
        ValidationError
            If title, description or severity is missing or invalid.
        NotFoundError
            If a supplied location or camera id is unknown.
        """
        if not title or not description:
            raise ValidationError("Missing required fields: title and description")
        level = parse_severity(severity)
        try:
            source = TriggerSource(trigger_source or TriggerSource.MANUAL)
        except ValueError:
            raise ValidationError(f"Unknown trigger source '{trigger_source}'") from None
        if location_id is not None and self.store.get_location(location_id) is None:
            raise NotFoundError(f"Location '{location_id}' not found")
        if camera_id is not None and self.store.get_camera(camera_id) is None:
            raise NotFoundError(f"Camera '{camera_id}' not found")

        alert = Alert(
            id=new_id(),
            title=title,
            description=description,
            severity=level,
            location_id=location_id,
            camera_id=camera_id,
            trigger_source=source,
            created_at=self.clock(),
            created_by=created_by,
        )
        self.store.insert_alert(alert)
        logger.info("Manual %s alert %s raised by %s", level.value, alert.id, created_by or "unknown")
        if self.audit is not None:
            self.audit.log_alert_created(alert)
        return alert

    def list_alerts(
        self,
        status: Optional[str | AlertStatus] = None,
        severity: Optional[str | Severity] = None,
        limit: int = 50,
    ) -> List[Alert]:
        return self.store.list_alerts(
            status=parse_status(status) if status else None,
            severity=parse_severity(severity) if severity else None,
            limit=limit,
        )

    def update_status(self, alert_id: str, status: str | AlertStatus, actor: Optional[str] = None) -> Alert:
        """Move an alert to a new status.

        Raises
        ------
        ValidationError
            If ``status`` is not a known status.
        NotFoundError
            If the alert does not exist.
        InvalidTransitionError
            If the transition is not allowed from the alert's current
            state. The alert is left unchanged.
        """
        target = parse_status(status)
        # Statuses only move forward, so a lost race re-checks at most a few times.
        while True:
            current = self.store.get_alert(alert_id)
            if current is None:
                raise NotFoundError(f"Alert '{alert_id}' not found")
            if not current.can_transition_to(target):
                raise InvalidTransitionError(current.status.value, target.value)

            now = self.clock()
            applied = self.store.compare_and_set_alert_status(
                alert_id,
                expected=current.status,
                status=target,
                resolved_at=now if target is AlertStatus.RESOLVED else None,
            )
            if applied:
                break

        updated = current.with_status(target, now)
        logger.info("Alert %s moved %s -> %s", alert_id, current.status.value, target.value)
        if self.audit is not None:
            self.audit.log_status_change(current, updated, actor=actor)
        return updated

"""Crowd density threshold alerting.

The `ThresholdAlertEngine` turns a single reading into at most one new
alert. The reading's person count is expressed as a percentage of the
location's capacity and mapped onto a severity level; if the level is
at least ``medium`` and the location has no open crowd density
incident, a new ``active`` alert is written.

The engine is level-triggered: every qualifying reading is evaluated,
but only the first one after the previous incident was closed opens a
new alert. An open incident is never escalated in place.

The "is there already an open incident" question is answered by the
store, not by in-process state, so any number of engine instances
sharing a store observe the same invariant. The final insert is
conditional (see `CrowdDataStore.insert_alert_if_absent`), which closes
the window between the lookup and the write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from analytics.numeric import percentage, round_half_away
from schemas import Alert, AlertStatus, NotFoundError, Severity, TriggerSource
from storage.database_store import CrowdDataStore, new_id, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeverityThresholds:
    """Lower bounds (in percent of capacity) of each alerting severity."""

    critical: float = 90.0
    high: float = 75.0
    medium: float = 60.0

    def __post_init__(self) -> None:
        if not (self.critical > self.high > self.medium > 0):
            raise ValueError(
                "Severity thresholds must satisfy critical > high > medium > 0, "
                f"got critical={self.critical}, high={self.high}, medium={self.medium}"
            )

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, Any]]) -> "SeverityThresholds":
        cfg = cfg or {}
        defaults = cls()
        return cls(
            critical=float(cfg.get("critical", defaults.critical)),
            high=float(cfg.get("high", defaults.high)),
            medium=float(cfg.get("medium", defaults.medium)),
        )

    def classify(self, pct: float) -> Optional[Severity]:
        """Return the severity for a capacity percentage, or None below ``medium``."""
        if pct >= self.critical:
            return Severity.CRITICAL
        if pct >= self.high:
            return Severity.HIGH
        if pct >= self.medium:
            return Severity.MEDIUM
        return None


class ThresholdAlertEngine:
    """Open crowd density alerts when a reading crosses a capacity threshold."""

    def __init__(
        self,
        store: CrowdDataStore,
        thresholds: Optional[SeverityThresholds] = None,
        metrics: Optional[Any] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Parameters
        ----------
        store : CrowdDataStore
            Source of location capacities and destination of new alerts.
        thresholds : SeverityThresholds, optional
            Percent-of-capacity cut-offs; defaults to 90/75/60.
        metrics : MetricsExporter, optional
            Receives a count of every alert opened.
        clock : callable, optional
            Returns the current time; injected by tests.
        """
        self.store = store
        self.thresholds = thresholds or SeverityThresholds()
        self.metrics = metrics
        self.clock = clock

    def evaluate(self, location_id: Optional[str], camera_id: Optional[str], person_count: int) -> Optional[Alert]:
        """Evaluate one reading and return the alert it opened, if any.

        Raises
        ------
        NotFoundError
            If ``location_id`` does not reference a known location.
        StoreError
            If the store cannot be read or written.
        """
        if location_id is None:
            return None
        location = self.store.get_location(location_id)
        if location is None:
            raise NotFoundError(f"Location '{location_id}' not found")
        if not location.has_capacity:
            return None

        pct = percentage(person_count, location.capacity)
        severity = self.thresholds.classify(pct)
        if severity is None:
            return None

        existing = self.store.find_active_alert(location_id, TriggerSource.CROWD_DENSITY)
        if existing is not None:
            logger.debug("Suppressing %s alert for %s: incident %s still active", severity.value, location_id, existing.id)
            return None

        alert = Alert(
            id=new_id(),
            title=f"High Crowd Density at {location.name}",
            description=(
                f"Crowd capacity at {round_half_away(pct)}% "
                f"({person_count}/{location.capacity} people)"
            ),
            severity=severity,
            location_id=location_id,
            camera_id=camera_id,
            trigger_source=TriggerSource.CROWD_DENSITY,
            crowd_count=person_count,
            status=AlertStatus.ACTIVE,
            created_at=self.clock(),
        )
        if not self.store.insert_alert_if_absent(alert):
            # Another writer opened the incident between lookup and insert.
            logger.debug("Concurrent crowd density alert already open for %s", location_id)
            return None

        logger.info("Opened %s crowd density alert %s for %s (%d people)", severity.value, alert.id, location.name, person_count)
        if self.metrics is not None:
            self.metrics.record_alert_opened(severity.value)
        return alert

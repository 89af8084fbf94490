"""Dashboard headline figures.

The snapshot combines four independent reads: online cameras, active
alerts, the recent crowd sample and the location registry. Unlike the
windowed analytics, total capacity here counts every location exactly
once, since there is no per-reading join.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Sequence

from analytics.numeric import mean_count, percentage, round_half_away
from schemas import AlertStatus, CameraStatus, Location, Reading
from storage.database_store import CrowdDataStore, utc_now

SAMPLE_WINDOW = timedelta(minutes=60)
SAMPLE_LIMIT = 50


@dataclass(frozen=True)
class DashboardSnapshot:
    active_cameras: int = 0
    current_crowd: int = 0
    active_alerts: int = 0
    capacity_usage: int = 0
    total_capacity: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "activeCameras": self.active_cameras,
            "currentCrowd": self.current_crowd,
            "activeAlerts": self.active_alerts,
            "capacityUsage": self.capacity_usage,
            "totalCapacity": self.total_capacity,
        }


def compute_snapshot(
    active_cameras: int,
    active_alerts: int,
    recent: Sequence[Reading],
    locations: Sequence[Location],
) -> DashboardSnapshot:
    """Combine pre-fetched inputs into the dashboard figures.

    ``recent`` is expected to be the capped, newest-first crowd sample.
    """
    current = round_half_away(mean_count(r.person_count for r in recent))
    total_capacity = sum((loc.capacity or 0) for loc in locations)
    return DashboardSnapshot(
        active_cameras=active_cameras,
        current_crowd=current,
        active_alerts=active_alerts,
        capacity_usage=round_half_away(percentage(current, total_capacity)),
        total_capacity=total_capacity,
    )


def snapshot(store: CrowdDataStore, now: Optional[datetime] = None) -> DashboardSnapshot:
    now = now or utc_now()
    return compute_snapshot(
        active_cameras=store.count_cameras(CameraStatus.ONLINE),
        active_alerts=store.count_alerts(AlertStatus.ACTIVE),
        recent=store.fetch_readings(since=now - SAMPLE_WINDOW, until=now, limit=SAMPLE_LIMIT),
        locations=store.list_locations(),
    )

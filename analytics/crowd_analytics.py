"""Windowed crowd analytics.

This module summarises the readings of a trailing time window into the
figures shown on the analytics page: total/average/peak/current crowd,
capacity utilisation, an hour-of-day profile and a per-location
breakdown.

The computation itself (`compute_summary`) is a pure function of a list
of readings and the location registry, so it can be tested without a
store and run concurrently with ingestion. `summarize` is the thin
wrapper that selects the window from a store.

Two behaviours are deliberately literal:

* capacity utilisation divides the current crowd by the capacity summed
  once per *reading* in the window, not once per distinct location;
* hourly buckets are keyed by local hour of day ("HH:00"), so readings
  24 hours apart share a bucket.

The per-location breakdown is keyed by location name unless
``breakdown_key="id"`` is requested.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Any, Dict, List, Mapping, Optional, Sequence

from analytics.numeric import mean_count, peak_count, percentage, round_half_away
from schemas import Location, Reading, ValidationError
from storage.database_store import CrowdDataStore, utc_now

UNKNOWN_LOCATION = "Unknown"
BREAKDOWN_KEYS = ("name", "id")


@dataclass(frozen=True)
class HourlyBucket:
    hour: str
    avg_crowd: int
    peak_crowd: int

    def to_dict(self) -> Dict[str, Any]:
        return {"hour": self.hour, "avgCrowd": self.avg_crowd, "peakCrowd": self.peak_crowd}


@dataclass(frozen=True)
class LocationStats:
    avg_crowd: int
    peak_crowd: int
    capacity: int

    def to_dict(self) -> Dict[str, Any]:
        return {"avgCrowd": self.avg_crowd, "peakCrowd": self.peak_crowd, "capacity": self.capacity}


@dataclass(frozen=True)
class AnalyticsSummary:
    total_readings: int = 0
    average_crowd: int = 0
    peak_crowd: int = 0
    current_crowd: int = 0
    capacity_utilization: int = 0
    hourly_data: List[HourlyBucket] = field(default_factory=list)
    location_breakdown: Dict[str, LocationStats] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalReadings": self.total_readings,
            "averageCrowd": self.average_crowd,
            "peakCrowd": self.peak_crowd,
            "currentCrowd": self.current_crowd,
            "capacityUtilization": self.capacity_utilization,
            "hourlyData": [b.to_dict() for b in self.hourly_data],
            "locationBreakdown": {k: v.to_dict() for k, v in self.location_breakdown.items()},
        }


def window_start(now: datetime, hours: Any) -> datetime:
    """Return ``now - hours`` after checking ``hours`` is an integer >= 1."""
    if isinstance(hours, bool) or not isinstance(hours, int) or hours < 1:
        raise ValidationError(f"window hours must be an integer >= 1, got {hours!r}")
    return now - timedelta(hours=hours)


def hour_bucket(ts: datetime, tz: Optional[tzinfo] = None) -> str:
    """Format a timestamp as its local hour of day, e.g. ``"07:00"``."""
    return ts.astimezone(tz).strftime("%H:00")


def compute_summary(
    readings: Sequence[Reading],
    locations: Mapping[str, Location],
    tz: Optional[tzinfo] = None,
    breakdown_key: str = "name",
) -> AnalyticsSummary:
    """Summarise a window of readings.

    Parameters
    ----------
    readings : sequence of Reading
        Readings inside the window, in any order.
    locations : mapping
        Location registry keyed by id, used to join capacity and name.
    tz : tzinfo, optional
        Zone used for hour-of-day buckets; the process local zone by
        default.
    breakdown_key : {"name", "id"}
        Key of the per-location breakdown.
    """
    if breakdown_key not in BREAKDOWN_KEYS:
        raise ValueError(f"breakdown_key must be one of {BREAKDOWN_KEYS}, got {breakdown_key!r}")
    if not readings:
        return AnalyticsSummary()

    ordered = sorted(readings, key=lambda r: r.timestamp, reverse=True)
    counts = [r.person_count for r in ordered]
    joined = [locations.get(r.location_id) if r.location_id else None for r in ordered]

    current = ordered[0].person_count
    total_capacity = sum((loc.capacity or 0) for loc in joined if loc is not None)

    hourly: Dict[str, List[int]] = {}
    for r in ordered:
        hourly.setdefault(hour_bucket(r.timestamp, tz), []).append(r.person_count)
    hourly_data = [
        HourlyBucket(hour=h, avg_crowd=round_half_away(mean_count(c)), peak_crowd=peak_count(c))
        for h, c in sorted(hourly.items())
    ]

    # First-seen reading (the newest) fixes each group's capacity.
    groups: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for r, loc in zip(ordered, joined):
        if loc is None:
            key = UNKNOWN_LOCATION
        else:
            key = loc.name if breakdown_key == "name" else loc.id
        if key not in groups:
            groups[key] = {"counts": [], "capacity": (loc.capacity or 0) if loc else 0}
        groups[key]["counts"].append(r.person_count)
    breakdown = {
        key: LocationStats(
            avg_crowd=round_half_away(mean_count(g["counts"])),
            peak_crowd=peak_count(g["counts"]),
            capacity=g["capacity"],
        )
        for key, g in groups.items()
    }

    return AnalyticsSummary(
        total_readings=len(ordered),
        average_crowd=round_half_away(mean_count(counts)),
        peak_crowd=peak_count(counts),
        current_crowd=current,
        capacity_utilization=round_half_away(percentage(current, total_capacity)),
        hourly_data=hourly_data,
        location_breakdown=breakdown,
    )


def summarize(
    store: CrowdDataStore,
    location_id: Optional[str] = None,
    window_hours: int = 24,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
    breakdown_key: str = "name",
) -> AnalyticsSummary:
    """Summarise the readings of the last ``window_hours`` hours."""
    now = now or utc_now()
    since = window_start(now, window_hours)
    readings = store.fetch_readings(since=since, until=now, location_id=location_id)
    return compute_summary(readings, store.locations_by_id(), tz=tz, breakdown_key=breakdown_key)


def recent_readings(
    store: CrowdDataStore,
    camera_id: Optional[str] = None,
    location_id: Optional[str] = None,
    hours: int = 24,
    limit: int = 100,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """List raw readings newest first, joined with location and camera names."""
    now = now or utc_now()
    since = window_start(now, hours)
    readings = store.fetch_readings(
        since=since, until=now, location_id=location_id, camera_id=camera_id, limit=limit
    )
    locations = store.locations_by_id()
    cameras = {c.id: c for c in store.list_cameras()}
    rows: List[Dict[str, Any]] = []
    for r in readings:
        row = r.to_dict()
        loc = locations.get(r.location_id) if r.location_id else None
        cam = cameras.get(r.camera_id)
        row["location"] = {"name": loc.name, "area_type": loc.area_type} if loc else None
        row["camera"] = {"name": cam.name, "camera_type": cam.camera_type} if cam else None
        rows.append(row)
    return rows

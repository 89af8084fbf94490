"""Spatial crowd intensity for heat-map rendering.

Readings from a short trailing window (one hour by default) are joined
with their locations, grouped by the exact ``(latitude, longitude)``
pair, and reduced to an average/peak crowd and a 0-100 intensity.

Intensity is the average crowd as a percentage of capacity, capped at
100. Locations without a capacity fall back to treating 100 people as
"full"; this is a display convention, not a normalisation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from analytics.crowd_analytics import window_start
from analytics.numeric import mean_count, peak_count, percentage, round_half_away
from schemas import Location, Reading
from storage.database_store import CrowdDataStore, utc_now

GROUP_BY_OPTIONS = ("coordinates", "location")
# Crowd size treated as 100% intensity when a location has no capacity.
FALLBACK_FULL_CROWD = 100


@dataclass(frozen=True)
class HeatMapPoint:
    latitude: float
    longitude: float
    name: str
    avg_crowd: int
    max_crowd: int
    capacity: Optional[int]
    intensity: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "name": self.name,
            "avgCrowd": self.avg_crowd,
            "maxCrowd": self.max_crowd,
            "capacity": self.capacity,
            "intensity": self.intensity,
        }


def intensity_for(avg_crowd: float, capacity: Optional[int]) -> int:
    if capacity and capacity > 0:
        raw = percentage(avg_crowd, capacity)
    else:
        raw = percentage(avg_crowd, FALLBACK_FULL_CROWD)
    return round_half_away(min(100.0, raw))


def compute_heat_map(
    readings: Sequence[Reading],
    locations: Mapping[str, Location],
    group_by: str = "coordinates",
) -> Tuple[List[HeatMapPoint], int]:
    """Build heat-map points from a window of readings.

    Returns the points (in first-seen order) and the number of readings
    that contributed, i.e. those whose location has coordinates.
    """
    if group_by not in GROUP_BY_OPTIONS:
        raise ValueError(f"group_by must be one of {GROUP_BY_OPTIONS}, got {group_by!r}")

    groups: Dict[Any, Dict[str, Any]] = {}
    used = 0
    for r in readings:
        loc = locations.get(r.location_id) if r.location_id else None
        if loc is None or not loc.has_coordinates:
            continue
        used += 1
        key = (loc.latitude, loc.longitude) if group_by == "coordinates" else loc.id
        if key not in groups:
            groups[key] = {"location": loc, "counts": []}
        groups[key]["counts"].append(r.person_count)

    points: List[HeatMapPoint] = []
    for g in groups.values():
        location: Location = g["location"]
        avg = mean_count(g["counts"])
        points.append(
            HeatMapPoint(
                latitude=location.latitude,
                longitude=location.longitude,
                name=location.name,
                avg_crowd=round_half_away(avg),
                max_crowd=peak_count(g["counts"]),
                capacity=location.capacity,
                intensity=intensity_for(avg, location.capacity),
            )
        )
    return points, used


def heat_map(
    store: CrowdDataStore,
    window_hours: int = 1,
    now: Optional[datetime] = None,
    group_by: str = "coordinates",
) -> List[HeatMapPoint]:
    """Heat-map points for the last ``window_hours`` hours."""
    now = now or utc_now()
    points, _ = compute_heat_map(
        store.fetch_readings(since=window_start(now, window_hours), until=now),
        store.locations_by_id(),
        group_by=group_by,
    )
    return points


def heat_map_payload(
    store: CrowdDataStore,
    window_hours: int = 1,
    now: Optional[datetime] = None,
    group_by: str = "coordinates",
) -> Dict[str, Any]:
    """Heat-map points wrapped with the generation time and reading count."""
    now = now or utc_now()
    points, used = compute_heat_map(
        store.fetch_readings(since=window_start(now, window_hours), until=now),
        store.locations_by_id(),
        group_by=group_by,
    )
    return {
        "heatMapPoints": [p.to_dict() for p in points],
        "timestamp": now.isoformat(),
        "dataPoints": used,
    }

from __future__ import annotations

from datetime import timedelta

import pytest

from analytics.heat_map import compute_heat_map, heat_map, heat_map_payload, intensity_for
from schemas import Location


def add(store, location_id, count, at, camera_id="cam-ghat"):
    return store.insert_reading(camera_id=camera_id, location_id=location_id, person_count=count, timestamp=at)


def test_capacityless_location_caps_intensity(seeded_store, clock) -> None:
    add(seeded_store, "gate", 100, clock.now - timedelta(minutes=10), camera_id="cam-gate")
    add(seeded_store, "gate", 140, clock.now - timedelta(minutes=5), camera_id="cam-gate")

    points = heat_map(seeded_store, now=clock.now)
    assert [p.to_dict() for p in points] == [
        {
            "latitude": 19.996,
            "longitude": 73.786,
            "name": "North Gate",
            "avgCrowd": 120,
            "maxCrowd": 140,
            "capacity": None,
            "intensity": 100,
        }
    ]


def test_intensity_relative_to_capacity(seeded_store, clock) -> None:
    add(seeded_store, "ghat", 300, clock.now - timedelta(minutes=10))
    add(seeded_store, "ghat", 351, clock.now - timedelta(minutes=5))
    (point,) = heat_map(seeded_store, now=clock.now)
    # avg 325.5 -> 32.55% of 1000; the unrounded average feeds intensity.
    assert point.avg_crowd == 326
    assert point.max_crowd == 351
    assert point.intensity == 33


@pytest.mark.parametrize(
    "avg, capacity, expected",
    [(50.0, 100, 50), (250.0, 100, 100), (42.4, None, 42), (42.5, 0, 43), (0.0, 10, 0)],
)
def test_intensity_for(avg: float, capacity, expected: int) -> None:
    assert intensity_for(avg, capacity) == expected


def test_default_window_is_one_hour(seeded_store, clock) -> None:
    add(seeded_store, "ghat", 900, clock.now - timedelta(hours=2))
    add(seeded_store, "temple", 20, clock.now - timedelta(minutes=30), camera_id="cam-temple")
    points = heat_map(seeded_store, now=clock.now)
    assert [p.name for p in points] == ["Sita Gumpha"]


def test_locations_without_coordinates_are_skipped(seeded_store, clock) -> None:
    seeded_store.add_location(Location(id="tent", name="Tent City", capacity=50))
    add(seeded_store, "tent", 40, clock.now)
    add(seeded_store, None, 40, clock.now)
    payload = heat_map_payload(seeded_store, now=clock.now)
    assert payload["heatMapPoints"] == []
    assert payload["dataPoints"] == 0
    assert payload["timestamp"] == clock.now.isoformat()


def test_identical_coordinates_merge_unless_grouped_by_location(seeded_store, clock) -> None:
    seeded_store.add_location(
        Location(id="ghat-annex", name="Ghat Annex", capacity=200, latitude=19.9975, longitude=73.7873)
    )
    add(seeded_store, "ghat-annex", 100, clock.now - timedelta(minutes=1))
    add(seeded_store, "ghat", 300, clock.now - timedelta(minutes=2))

    merged = heat_map(seeded_store, now=clock.now)
    assert len(merged) == 1
    assert merged[0].name == "Ghat Annex"
    assert merged[0].avg_crowd == 200
    assert merged[0].intensity == 100

    separate = heat_map(seeded_store, now=clock.now, group_by="location")
    assert sorted(p.name for p in separate) == ["Ghat Annex", "Main Ghat"]


def test_invalid_group_by() -> None:
    with pytest.raises(ValueError):
        compute_heat_map([], {}, group_by="grid")


def test_readings_after_now_are_left_out(seeded_store, clock) -> None:
    add(seeded_store, "ghat", 300, clock.now - timedelta(minutes=10))
    add(seeded_store, "ghat", 900, clock.now + timedelta(minutes=10))

    (point,) = heat_map(seeded_store, now=clock.now)
    assert point.avg_crowd == 300
    assert heat_map_payload(seeded_store, now=clock.now)["dataPoints"] == 1

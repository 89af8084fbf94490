from __future__ import annotations

from datetime import timedelta

import pytest

from schemas import Camera, CameraStatus, Location, NotFoundError, StoreError
from storage import CrowdDataStore


def test_tables_persist_across_connections(tmp_path, clock) -> None:
    path = tmp_path / "nested" / "crowd.db"
    first = CrowdDataStore(path)
    first.add_location(Location(id="ghat", name="Main Ghat", capacity=500))
    first.insert_reading("cam-1", 12, location_id="ghat", metadata={"fps": 5}, timestamp=clock.now)
    first.close()

    second = CrowdDataStore(path)
    (reading,) = second.fetch_readings()
    assert reading.metadata == {"fps": 5}
    assert reading.timestamp == clock.now
    assert second.get_location("ghat").capacity == 500
    second.close()


def test_fetch_readings_is_newest_first_and_filtered(store, clock) -> None:
    now = clock.now
    store.insert_reading("cam-1", 1, location_id="a", timestamp=now - timedelta(hours=2))
    store.insert_reading("cam-2", 2, location_id="b", timestamp=now - timedelta(hours=1))
    store.insert_reading("cam-1", 3, location_id="a", timestamp=now)

    assert [r.person_count for r in store.fetch_readings()] == [3, 2, 1]
    assert [r.person_count for r in store.fetch_readings(since=now - timedelta(hours=1))] == [3, 2]
    assert [r.person_count for r in store.fetch_readings(camera_id="cam-1")] == [3, 1]
    assert [r.person_count for r in store.fetch_readings(location_id="b")] == [2]
    assert [r.person_count for r in store.fetch_readings(limit=1)] == [3]


def test_locations_listed_by_name_and_upsert_keeps_existing(store) -> None:
    store.add_location(Location(id="b", name="Zeta"))
    store.add_location(Location(id="a", name="Alpha", capacity=10))
    store.upsert_location(Location(id="a", name="Renamed", capacity=99))
    assert [loc.name for loc in store.list_locations()] == ["Alpha", "Zeta"]
    assert store.get_location("a").capacity == 10
    with pytest.raises(StoreError):
        store.add_location(Location(id="a", name="Duplicate"))


def test_camera_registry_operations(store) -> None:
    store.add_camera(Camera(id="cam-1", name="East", camera_type="droidcam"))
    assert store.get_camera("cam-1").status is CameraStatus.OFFLINE

    updated = store.update_camera("cam-1", status="online", stream_url="rtsp://east/stream")
    assert updated.status is CameraStatus.ONLINE
    assert updated.stream_url == "rtsp://east/stream"
    assert store.count_cameras(CameraStatus.ONLINE) == 1

    with pytest.raises(ValueError):
        store.update_camera("cam-1", name="West")
    with pytest.raises(NotFoundError):
        store.update_camera("cam-x", status="online")

    store.delete_camera("cam-1")
    assert store.get_camera("cam-1") is None
    with pytest.raises(NotFoundError):
        store.delete_camera("cam-1")


def test_camera_location_must_exist(store) -> None:
    with pytest.raises(StoreError):
        store.add_camera(Camera(id="cam-1", name="East", location_id="nowhere"))
    assert store.get_camera("cam-1") is None


def test_fetch_readings_until_is_inclusive(store, clock) -> None:
    now = clock.now
    store.insert_reading("cam-1", 1, timestamp=now)
    store.insert_reading("cam-1", 2, timestamp=now + timedelta(microseconds=1))
    assert [r.person_count for r in store.fetch_readings(until=now)] == [1]

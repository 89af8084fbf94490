from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from schemas import Camera, CameraStatus, Location
from storage import CrowdDataStore


class FakeClock:
    """Deterministic replacement for ``utc_now``."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 14, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(tmp_path) -> CrowdDataStore:
    db = CrowdDataStore(tmp_path / "crowd.db")
    yield db
    db.close()


@pytest.fixture
def seeded_store(store: CrowdDataStore) -> CrowdDataStore:
    store.add_location(Location(id="ghat", name="Main Ghat", capacity=1000, latitude=19.9975, longitude=73.7873))
    store.add_location(Location(id="temple", name="Sita Gumpha", capacity=100, latitude=19.998, longitude=73.788))
    store.add_location(Location(id="gate", name="North Gate", capacity=None, latitude=19.996, longitude=73.786))
    store.add_camera(Camera(id="cam-ghat", name="Ghat East", location_id="ghat", status=CameraStatus.ONLINE))
    store.add_camera(Camera(id="cam-temple", name="Temple Door", location_id="temple"))
    store.add_camera(Camera(id="cam-gate", name="Gate", location_id="gate"))
    return store

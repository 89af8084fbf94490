"""SQLite crowd data store.

This store persists locations, cameras, crowd readings and alerts in a
SQLite database. Tables are created on first use. Readings are
append-only; alerts change only through conditional status updates.

The single-live-incident rule for crowd density alerts is enforced by a
partial unique index, so two writers racing on the same location cannot
both open an incident.

Usage
-----
```
from storage.database_store import CrowdDataStore
store = CrowdDataStore(db_path="crowd.db")
store.add_location(Location(id="ghat-1", name="Main Ghat", capacity=5000))
```
"""

from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from schemas import (
    Alert,
    AlertStatus,
    Camera,
    CameraStatus,
    Location,
    NotFoundError,
    Reading,
    Severity,
    StoreError,
    TriggerSource,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS locations (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    capacity INTEGER,
    latitude REAL,
    longitude REAL,
    area_type TEXT,
    description TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS cameras (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    camera_type TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'offline',
    stream_url TEXT,
    location_id TEXT REFERENCES locations(id),
    latitude REAL,
    longitude REAL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS crowd_data (
    id TEXT PRIMARY KEY,
    camera_id TEXT NOT NULL,
    location_id TEXT,
    person_count INTEGER NOT NULL,
    confidence_score REAL NOT NULL DEFAULT 0,
    timestamp TEXT NOT NULL,
    metadata TEXT NOT NULL DEFAULT '{}'
);

CREATE INDEX IF NOT EXISTS idx_crowd_data_timestamp ON crowd_data (timestamp);

CREATE TABLE IF NOT EXISTS alerts (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    severity TEXT NOT NULL,
    location_id TEXT,
    camera_id TEXT,
    trigger_source TEXT NOT NULL,
    crowd_count INTEGER,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL,
    resolved_at TEXT,
    created_by TEXT
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_alerts_single_live_incident
    ON alerts (location_id, trigger_source)
    WHERE status = 'active' AND trigger_source = 'crowd_density';
"""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_db(dt: datetime) -> str:
    # Fixed-width UTC text keeps lexical order equal to chronological order.
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def new_id() -> str:
    return str(uuid.uuid4())


class CrowdDataStore:
    """Persist crowd readings, alerts and the location/camera registry."""

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        # One connection shared across ingestion threads, serialised by _lock.
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.RLock()
        self._create_tables()

    def _create_tables(self) -> None:
        with self._transaction() as cur:
            cur.executescript(_SCHEMA)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        with self._lock:
            try:
                with self.conn:
                    yield self.conn.cursor()
            except sqlite3.Error as exc:
                raise StoreError(str(exc)) from exc

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------
    def add_location(self, location: Location) -> Location:
        with self._transaction() as cur:
            cur.execute(
                "INSERT INTO locations (id, name, capacity, latitude, longitude, area_type, description, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    location.id,
                    location.name,
                    location.capacity,
                    location.latitude,
                    location.longitude,
                    location.area_type,
                    location.description,
                    _to_db(utc_now()),
                ),
            )
        return location

    def upsert_location(self, location: Location) -> Location:
        """Insert a location, leaving an existing row with the same id untouched."""
        with self._transaction() as cur:
            cur.execute(
                "INSERT OR IGNORE INTO locations (id, name, capacity, latitude, longitude, area_type, description, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    location.id,
                    location.name,
                    location.capacity,
                    location.latitude,
                    location.longitude,
                    location.area_type,
                    location.description,
                    _to_db(utc_now()),
                ),
            )
        return location

    def get_location(self, location_id: str) -> Optional[Location]:
        with self._transaction() as cur:
            row = cur.execute("SELECT * FROM locations WHERE id = ?", (location_id,)).fetchone()
        return _row_to_location(row) if row else None

    def list_locations(self) -> List[Location]:
        with self._transaction() as cur:
            rows = cur.execute("SELECT * FROM locations ORDER BY name").fetchall()
        return [_row_to_location(r) for r in rows]

    def locations_by_id(self) -> Dict[str, Location]:
        return {loc.id: loc for loc in self.list_locations()}

    # ------------------------------------------------------------------
    # Cameras
    # ------------------------------------------------------------------
    def add_camera(self, camera: Camera) -> Camera:
        now = _to_db(utc_now())
        with self._transaction() as cur:
            cur.execute(
                "INSERT INTO cameras (id, name, camera_type, status, stream_url, location_id, latitude, longitude, "
                "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    camera.id,
                    camera.name,
                    camera.camera_type,
                    camera.status.value,
                    camera.stream_url,
                    camera.location_id,
                    camera.latitude,
                    camera.longitude,
                    now,
                    now,
                ),
            )
        return camera

    def get_camera(self, camera_id: str) -> Optional[Camera]:
        with self._transaction() as cur:
            row = cur.execute("SELECT * FROM cameras WHERE id = ?", (camera_id,)).fetchone()
        return _row_to_camera(row) if row else None

    def list_cameras(self) -> List[Camera]:
        with self._transaction() as cur:
            rows = cur.execute("SELECT * FROM cameras ORDER BY created_at DESC").fetchall()
        return [_row_to_camera(r) for r in rows]

    def update_camera(self, camera_id: str, **fields: Any) -> Camera:
        """Update status, stream_url, latitude or longitude of a camera.

        Raises
        ------
        NotFoundError
            If no camera has the given id.
        """
        allowed = {"status", "stream_url", "latitude", "longitude"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Cannot update camera fields: {', '.join(sorted(unknown))}")
        updates = dict(fields)
        if "status" in updates:
            updates["status"] = CameraStatus(updates["status"]).value
        assignments = ", ".join(f"{name} = ?" for name in updates)
        params = list(updates.values())
        with self._transaction() as cur:
            if updates:
                cur.execute(
                    f"UPDATE cameras SET {assignments}, updated_at = ? WHERE id = ?",
                    (*params, _to_db(utc_now()), camera_id),
                )
            row = cur.execute("SELECT * FROM cameras WHERE id = ?", (camera_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Camera '{camera_id}' not found")
        return _row_to_camera(row)

    def delete_camera(self, camera_id: str) -> None:
        with self._transaction() as cur:
            cur.execute("DELETE FROM cameras WHERE id = ?", (camera_id,))
            if cur.rowcount == 0:
                raise NotFoundError(f"Camera '{camera_id}' not found")

    def count_cameras(self, status: CameraStatus) -> int:
        with self._transaction() as cur:
            row = cur.execute("SELECT COUNT(*) FROM cameras WHERE status = ?", (status.value,)).fetchone()
        return int(row[0])

    # ------------------------------------------------------------------
    # Readings
    # ------------------------------------------------------------------
    def insert_reading(
        self,
        camera_id: str,
        person_count: int,
        location_id: Optional[str] = None,
        confidence_score: float = 0.0,
        metadata: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> Reading:
        reading = Reading(
            id=new_id(),
            camera_id=camera_id,
            location_id=location_id,
            person_count=person_count,
            confidence_score=confidence_score,
            timestamp=_from_db(_to_db(timestamp or utc_now())),
            metadata=dict(metadata or {}),
        )
        with self._transaction() as cur:
            cur.execute(
                "INSERT INTO crowd_data (id, camera_id, location_id, person_count, confidence_score, timestamp, metadata) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    reading.id,
                    reading.camera_id,
                    reading.location_id,
                    reading.person_count,
                    reading.confidence_score,
                    _to_db(reading.timestamp),
                    json.dumps(reading.metadata),
                ),
            )
        return reading

    def fetch_readings(
        self,
        since: Optional[datetime] = None,
        location_id: Optional[str] = None,
        camera_id: Optional[str] = None,
        limit: Optional[int] = None,
        until: Optional[datetime] = None,
    ) -> List[Reading]:
        """Return readings newest first, optionally filtered.

        ``since`` and ``until`` are both inclusive.
        """
        clauses: List[str] = []
        params: List[Any] = []
        if since is not None:
            clauses.append("timestamp >= ?")
            params.append(_to_db(since))
        if until is not None:
            clauses.append("timestamp <= ?")
            params.append(_to_db(until))
        if location_id is not None:
            clauses.append("location_id = ?")
            params.append(location_id)
        if camera_id is not None:
            clauses.append("camera_id = ?")
            params.append(camera_id)
        query = "SELECT * FROM crowd_data"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY timestamp DESC, rowid DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))
        with self._transaction() as cur:
            rows = cur.execute(query, params).fetchall()
        return [_row_to_reading(r) for r in rows]

    def latest_reading_times(self) -> Dict[str, datetime]:
        """Return the newest reading timestamp of every camera that has reported."""
        with self._transaction() as cur:
            rows = cur.execute(
                "SELECT camera_id, MAX(timestamp) AS last_seen FROM crowd_data GROUP BY camera_id"
            ).fetchall()
        return {r["camera_id"]: _from_db(r["last_seen"]) for r in rows}

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------
    def insert_alert(self, alert: Alert) -> Alert:
        with self._transaction() as cur:
            cur.execute(_INSERT_ALERT.format(verb="INSERT"), _alert_params(alert))
        return alert

    def insert_alert_if_absent(self, alert: Alert) -> bool:
        """Insert an alert unless it would create a second live incident.

        Returns ``True`` when the row was written and ``False`` when the
        unique index on active crowd density alerts rejected it.
        """
        with self._transaction() as cur:
            cur.execute(_INSERT_ALERT.format(verb="INSERT OR IGNORE"), _alert_params(alert))
            return cur.rowcount == 1

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        with self._transaction() as cur:
            row = cur.execute("SELECT * FROM alerts WHERE id = ?", (alert_id,)).fetchone()
        return _row_to_alert(row) if row else None

    def find_active_alert(self, location_id: str, trigger_source: TriggerSource) -> Optional[Alert]:
        with self._transaction() as cur:
            row = cur.execute(
                "SELECT * FROM alerts WHERE location_id = ? AND trigger_source = ? AND status = ? "
                "ORDER BY created_at DESC LIMIT 1",
                (location_id, trigger_source.value, AlertStatus.ACTIVE.value),
            ).fetchone()
        return _row_to_alert(row) if row else None

    def list_alerts(
        self,
        status: Optional[AlertStatus] = None,
        severity: Optional[Severity] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        clauses: List[str] = []
        params: List[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if severity is not None:
            clauses.append("severity = ?")
            params.append(severity.value)
        query = "SELECT * FROM alerts"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC, rowid DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))
        with self._transaction() as cur:
            rows = cur.execute(query, params).fetchall()
        return [_row_to_alert(r) for r in rows]

    def count_alerts(self, status: AlertStatus) -> int:
        with self._transaction() as cur:
            row = cur.execute("SELECT COUNT(*) FROM alerts WHERE status = ?", (status.value,)).fetchone()
        return int(row[0])

    def compare_and_set_alert_status(
        self,
        alert_id: str,
        expected: AlertStatus,
        status: AlertStatus,
        resolved_at: Optional[datetime] = None,
    ) -> bool:
        """Move an alert to ``status`` only if it is still in ``expected``."""
        with self._transaction() as cur:
            if resolved_at is not None:
                cur.execute(
                    "UPDATE alerts SET status = ?, resolved_at = ? WHERE id = ? AND status = ?",
                    (status.value, _to_db(resolved_at), alert_id, expected.value),
                )
            else:
                cur.execute(
                    "UPDATE alerts SET status = ? WHERE id = ? AND status = ?",
                    (status.value, alert_id, expected.value),
                )
            return cur.rowcount == 1


_INSERT_ALERT = (
    "{verb} INTO alerts (id, title, description, severity, location_id, camera_id, trigger_source, "
    "crowd_count, status, created_at, resolved_at, created_by) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
)


def _alert_params(alert: Alert) -> tuple:
    return (
        alert.id,
        alert.title,
        alert.description,
        alert.severity.value,
        alert.location_id,
        alert.camera_id,
        alert.trigger_source.value,
        alert.crowd_count,
        alert.status.value,
        _to_db(alert.created_at),
        _to_db(alert.resolved_at) if alert.resolved_at else None,
        alert.created_by,
    )


def _row_to_location(row: sqlite3.Row) -> Location:
    return Location(
        id=row["id"],
        name=row["name"],
        capacity=row["capacity"],
        latitude=row["latitude"],
        longitude=row["longitude"],
        area_type=row["area_type"],
        description=row["description"],
    )


def _row_to_camera(row: sqlite3.Row) -> Camera:
    return Camera(
        id=row["id"],
        name=row["name"],
        camera_type=row["camera_type"],
        status=CameraStatus(row["status"]),
        stream_url=row["stream_url"],
        location_id=row["location_id"],
        latitude=row["latitude"],
        longitude=row["longitude"],
    )


def _row_to_reading(row: sqlite3.Row) -> Reading:
    return Reading(
        id=row["id"],
        camera_id=row["camera_id"],
        location_id=row["location_id"],
        person_count=row["person_count"],
        confidence_score=row["confidence_score"],
        timestamp=_from_db(row["timestamp"]),
        metadata=json.loads(row["metadata"] or "{}"),
    )


def _row_to_alert(row: sqlite3.Row) -> Alert:
    return Alert(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        severity=Severity(row["severity"]),
        location_id=row["location_id"],
        camera_id=row["camera_id"],
        trigger_source=TriggerSource(row["trigger_source"]),
        crowd_count=row["crowd_count"],
        status=AlertStatus(row["status"]),
        created_at=_from_db(row["created_at"]),
        resolved_at=_from_db(row["resolved_at"]),
        created_by=row["created_by"],
    )

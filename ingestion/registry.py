"""Location and camera registration.

Operators register locations and cameras before any reading arrives.
Payloads are validated here; the store only persists what it is given.
A location needs a name and coordinates, a camera needs a name and a
type, and a camera may only point at a registered location.
"""

from __future__ import annotations

import logging
import numbers
from typing import Any, Dict, List, Mapping, Optional

from schemas import Camera, CameraStatus, Location, NotFoundError, ValidationError
from storage.database_store import CrowdDataStore, new_id

logger = logging.getLogger(__name__)

CAMERA_UPDATE_FIELDS = ("status", "stream_url", "latitude", "longitude")


def _coordinate(payload: Mapping[str, Any], field: str, bound: float, required: bool) -> Optional[float]:
    value = payload.get(field)
    if value is None:
        if required:
            raise ValidationError(f"Missing required field: {field}")
        return None
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError(f"{field} must be a number, got {value!r}")
    if not -bound <= float(value) <= bound:
        raise ValidationError(f"{field} must be within [-{bound:g}, {bound:g}], got {value}")
    return float(value)


def _optional_text(payload: Mapping[str, Any], field: str) -> Optional[str]:
    value = payload.get(field)
    return str(value) if value not in (None, "") else None


def validate_location(payload: Mapping[str, Any]) -> Location:
    """Build a `Location` from a raw payload.

    ``id`` is generated when absent. ``capacity`` is optional but must be
    a non-negative integer when given.

    Raises
    ------
    ValidationError
        If ``name``, ``latitude`` or ``longitude`` is missing or invalid.
    """
    name = payload.get("name")
    if not name:
        raise ValidationError("Missing required field: name")
    latitude = _coordinate(payload, "latitude", 90.0, required=True)
    longitude = _coordinate(payload, "longitude", 180.0, required=True)

    capacity = payload.get("capacity")
    if capacity is not None:
        if isinstance(capacity, bool) or not isinstance(capacity, numbers.Integral) or capacity < 0:
            raise ValidationError(f"capacity must be a non-negative integer, got {capacity!r}")
        capacity = int(capacity)

    return Location(
        id=_optional_text(payload, "id") or new_id(),
        name=str(name),
        capacity=capacity,
        latitude=latitude,
        longitude=longitude,
        area_type=_optional_text(payload, "area_type"),
        description=_optional_text(payload, "description"),
    )


def validate_camera(payload: Mapping[str, Any]) -> Camera:
    """Build a new, offline `Camera` from a raw payload.

    Raises
    ------
    ValidationError
        If ``name`` or ``camera_type`` is missing, or a coordinate is
        not a valid number.
    """
    name = payload.get("name")
    camera_type = payload.get("camera_type")
    if not name or not camera_type:
        raise ValidationError("Missing required fields: name and camera_type")
    return Camera(
        id=_optional_text(payload, "id") or new_id(),
        name=str(name),
        camera_type=str(camera_type),
        status=CameraStatus.OFFLINE,
        stream_url=_optional_text(payload, "stream_url"),
        location_id=_optional_text(payload, "location_id"),
        latitude=_coordinate(payload, "latitude", 90.0, required=False),
        longitude=_coordinate(payload, "longitude", 180.0, required=False),
    )


class RegistryManager:
    """Validated registry operations on top of a `CrowdDataStore`."""

    def __init__(self, store: CrowdDataStore) -> None:
        self.store = store

    def add_location(self, payload: Mapping[str, Any]) -> Location:
        location = self.store.add_location(validate_location(payload))
        logger.info("Registered location %s (%s)", location.id, location.name)
        return location

    def list_locations(self) -> List[Location]:
        return self.store.list_locations()

    def add_camera(self, payload: Mapping[str, Any]) -> Camera:
        """Register a camera.

        Raises
        ------
        ValidationError
            If the payload is malformed.
        NotFoundError
            If ``location_id`` names an unregistered location.
        """
        camera = validate_camera(payload)
        if camera.location_id is not None and self.store.get_location(camera.location_id) is None:
            raise NotFoundError(f"Location '{camera.location_id}' not found")
        self.store.add_camera(camera)
        logger.info("Registered camera %s (%s)", camera.id, camera.name)
        return camera

    def list_cameras(self) -> List[Dict[str, Any]]:
        """Cameras newest first, each joined with its location summary."""
        locations = self.store.locations_by_id()
        rows: List[Dict[str, Any]] = []
        for camera in self.store.list_cameras():
            row = camera.to_dict()
            loc = locations.get(camera.location_id) if camera.location_id else None
            row["location"] = (
                {"name": loc.name, "area_type": loc.area_type, "capacity": loc.capacity} if loc else None
            )
            rows.append(row)
        return rows

    def update_camera(self, camera_id: str, payload: Mapping[str, Any]) -> Camera:
        """Apply a partial update; keys absent from ``payload`` are left alone.

        Raises
        ------
        ValidationError
            If a field is not updatable or has an invalid value.
        NotFoundError
            If no camera has the given id.
        """
        unknown = set(payload) - set(CAMERA_UPDATE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update camera fields: {', '.join(sorted(unknown))}")
        fields: Dict[str, Any] = {}
        if payload.get("status"):
            try:
                fields["status"] = CameraStatus(payload["status"])
            except ValueError:
                raise ValidationError(f"Unknown camera status: {payload['status']!r}") from None
        if "stream_url" in payload:
            fields["stream_url"] = _optional_text(payload, "stream_url")
        if "latitude" in payload:
            fields["latitude"] = _coordinate(payload, "latitude", 90.0, required=False)
        if "longitude" in payload:
            fields["longitude"] = _coordinate(payload, "longitude", 180.0, required=False)
        camera = self.store.update_camera(camera_id, **fields)
        logger.info("Updated camera %s: %s", camera_id, ", ".join(sorted(fields)) or "no changes")
        return camera

    def delete_camera(self, camera_id: str) -> None:
        self.store.delete_camera(camera_id)
        logger.info("Deleted camera %s", camera_id)

"""Locations and the cameras that cover them."""

from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


class CameraStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    MAINTENANCE = "maintenance"


@dataclass(frozen=True)
class Location:
    """A named physical area with an optional comfortable capacity."""

    id: str
    name: str
    capacity: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    area_type: Optional[str] = None
    description: Optional[str] = None

    @property
    def has_capacity(self) -> bool:
        return bool(self.capacity) and self.capacity > 0

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Camera:
    id: str
    name: str
    camera_type: str = "fixed"
    status: CameraStatus = CameraStatus.OFFLINE
    stream_url: Optional[str] = None
    location_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

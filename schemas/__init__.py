"""Schemas package.

Plain data types shared by the storage, ingestion, rules and analytics
packages: readings, locations, cameras, alerts and the error kinds the
core raises.
"""

from .alert import Alert, AlertStatus, Severity, TriggerSource, ALLOWED_TRANSITIONS
from .errors import (
    CrowdMonitorError,
    InvalidTransitionError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from .location import Camera, CameraStatus, Location
from .reading import Reading

__all__ = [
    "Alert",
    "AlertStatus",
    "Severity",
    "TriggerSource",
    "ALLOWED_TRANSITIONS",
    "Camera",
    "CameraStatus",
    "Location",
    "Reading",
    "CrowdMonitorError",
    "InvalidTransitionError",
    "NotFoundError",
    "StoreError",
    "ValidationError",
]

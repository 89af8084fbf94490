"""Ingestion package.

Validates occupancy readings reported by cameras, records them and
forwards them to the threshold alert engine. `RegistryManager` validates
the locations and cameras those readings refer to.
"""

from .registry import RegistryManager, validate_camera, validate_location
from .validator import IngestResult, ReadingIngestor, validate_reading

__all__ = [
    "IngestResult",
    "ReadingIngestor",
    "RegistryManager",
    "validate_camera",
    "validate_location",
    "validate_reading",
]

"""Crowd reading record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Reading:
    """
    A single occupancy reading reported by a camera.

    Attributes
    ----------
    id               : str
        Identifier assigned by the store.
    camera_id        : str
        Camera that produced the reading.
    location_id      : str or None
        Location the camera covers, if known.
    person_count     : int
        Number of persons detected (never negative).
    confidence_score : float
        Detector confidence in [0, 1].
    timestamp        : datetime
        Timezone-aware server time at which the reading was recorded.
    metadata         : dict
        Opaque key/value pairs supplied by the sender.
    """

    id: str
    camera_id: str
    location_id: Optional[str]
    person_count: int
    confidence_score: float
    timestamp: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "camera_id": self.camera_id,
            "location_id": self.location_id,
            "person_count": self.person_count,
            "confidence_score": self.confidence_score,
            "timestamp": self.timestamp.isoformat(),
            "metadata": dict(self.metadata),
        }

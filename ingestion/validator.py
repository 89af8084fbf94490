"""Reading ingestion.

`ReadingIngestor.ingest` is the single entry point for occupancy
readings coming from cameras. It validates the payload, persists the
reading with a server timestamp and then hands the count to the
threshold alert engine.

Recording is authoritative and alerting is best-effort: once the
reading is stored, a failure in the alert step is logged, counted and
reported in the result, but never undoes the write or fails the call.
"""

from __future__ import annotations

import logging
import numbers
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from analytics.camera_health import CameraHealthMonitor
from rules.threshold_alerts import ThresholdAlertEngine
from schemas import Alert, NotFoundError, Reading, ValidationError
from storage.database_store import CrowdDataStore, utc_now

logger = logging.getLogger(__name__)

# Largest value an SQLite INTEGER column holds.
MAX_PERSON_COUNT = 2**63 - 1


@dataclass(frozen=True)
class ReadingPayload:
    """A validated, defaulted ingestion payload."""

    camera_id: str
    person_count: int
    location_id: Optional[str] = None
    confidence_score: float = 0.0
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class IngestResult:
    reading: Reading
    alert: Optional[Alert] = None
    alert_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.reading.to_dict(),
            "alert": self.alert.to_dict() if self.alert else None,
            "alert_error": self.alert_error,
        }


def validate_reading(payload: Mapping[str, Any]) -> ReadingPayload:
    """Check a raw payload and fill in defaults.

    Raises
    ------
    ValidationError
        If ``camera_id`` is missing, ``person_count`` is missing, not an
        integer, negative or beyond ``MAX_PERSON_COUNT``, ``confidence_score``
        is outside [0, 1], or ``metadata`` is not a mapping.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Reading payload must be an object")

    camera_id = payload.get("camera_id")
    person_count = payload.get("person_count")
    if not camera_id or person_count is None:
        raise ValidationError("Missing required fields: camera_id and person_count")

    # bool is an Integral; a count of True is a client bug.
    if isinstance(person_count, bool) or not isinstance(person_count, numbers.Integral):
        raise ValidationError(f"person_count must be an integer, got {person_count!r}")
    if person_count < 0:
        raise ValidationError(f"person_count must be non-negative, got {person_count}")
    if person_count > MAX_PERSON_COUNT:
        raise ValidationError(f"person_count is too large to store, got {person_count}")

    confidence = payload.get("confidence_score")
    if confidence is None:
        confidence = 0.0
    if isinstance(confidence, bool) or not isinstance(confidence, numbers.Real):
        raise ValidationError(f"confidence_score must be a number, got {confidence!r}")
    if not 0.0 <= float(confidence) <= 1.0:
        raise ValidationError(f"confidence_score must be within [0, 1], got {confidence}")

    metadata = payload.get("metadata")
    if metadata is None:
        metadata = {}
    if not isinstance(metadata, Mapping):
        raise ValidationError("metadata must be an object")

    location_id = payload.get("location_id") or None
    return ReadingPayload(
        camera_id=str(camera_id),
        person_count=int(person_count),
        location_id=str(location_id) if location_id is not None else None,
        confidence_score=float(confidence),
        metadata=dict(metadata),
    )


class ReadingIngestor:
    """Validate, persist and evaluate incoming readings."""

    def __init__(
        self,
        store: CrowdDataStore,
        alert_engine: Optional[ThresholdAlertEngine] = None,
        health: Optional[CameraHealthMonitor] = None,
        metrics: Optional[Any] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.alert_engine = alert_engine
        self.health = health
        self.metrics = metrics
        self.clock = clock

    def ingest(self, payload: Mapping[str, Any]) -> IngestResult:
        """Record one reading and evaluate it for crowd density alerts.

        Raises
        ------
        ValidationError
            If the payload is malformed.
        NotFoundError
            If the camera or the supplied location is not registered.
        StoreError
            If the reading could not be persisted.
        """
        started = time.perf_counter()
        try:
            reading_in = validate_reading(payload)
            self._check_references(reading_in)
        except ValidationError:
            self._rejected("invalid")
            raise
        except NotFoundError:
            self._rejected("unknown_reference")
            raise

        reading = self.store.insert_reading(
            camera_id=reading_in.camera_id,
            person_count=reading_in.person_count,
            location_id=reading_in.location_id,
            confidence_score=reading_in.confidence_score,
            metadata=reading_in.metadata,
            timestamp=self.clock(),
        )
        logger.debug("Stored reading %s from %s: %d people", reading.id, reading.camera_id, reading.person_count)

        if self.health is not None:
            self.health.update(reading.camera_id, reading.timestamp.timestamp())

        alert: Optional[Alert] = None
        alert_error: Optional[str] = None
        if self.alert_engine is not None:
            try:
                alert = self.alert_engine.evaluate(reading.location_id, reading.camera_id, reading.person_count)
            except Exception as exc:
                alert_error = str(exc) or exc.__class__.__name__
                logger.exception("Alert evaluation failed for reading %s; reading kept", reading.id)
                if self.metrics is not None:
                    self.metrics.record_alert_error(exc.__class__.__name__)

        if self.metrics is not None:
            self.metrics.record_ingested(reading.camera_id, time.perf_counter() - started)
        return IngestResult(reading=reading, alert=alert, alert_error=alert_error)

    def _check_references(self, reading_in: ReadingPayload) -> None:
        if self.store.get_camera(reading_in.camera_id) is None:
            raise NotFoundError(f"Camera '{reading_in.camera_id}' not found")
        if reading_in.location_id is not None and self.store.get_location(reading_in.location_id) is None:
            raise NotFoundError(f"Location '{reading_in.location_id}' not found")

    def _rejected(self, reason: str) -> None:
        if self.metrics is not None:
            self.metrics.record_rejected(reason)

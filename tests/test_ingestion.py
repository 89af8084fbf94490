from __future__ import annotations

import pytest

from analytics.camera_health import CameraHealthMonitor
from ingestion import ReadingIngestor, validate_reading
from monitoring import MetricsExporter
from rules import ThresholdAlertEngine
from schemas import AlertStatus, NotFoundError, StoreError, ValidationError


@pytest.fixture
def metrics() -> MetricsExporter:
    return MetricsExporter()


@pytest.fixture
def ingestor(seeded_store, clock, metrics) -> ReadingIngestor:
    engine = ThresholdAlertEngine(seeded_store, metrics=metrics, clock=clock)
    return ReadingIngestor(seeded_store, alert_engine=engine, metrics=metrics, clock=clock)


@pytest.mark.parametrize(
    "payload",
    [
        {"person_count": 3},
        {"camera_id": "", "person_count": 3},
        {"camera_id": "cam-ghat"},
        {"camera_id": "cam-ghat", "person_count": -1},
        {"camera_id": "cam-ghat", "location_id": "ghat", "person_count": 2**63},
        {"camera_id": "cam-ghat", "person_count": 2.5},
        {"camera_id": "cam-ghat", "person_count": True},
        {"camera_id": "cam-ghat", "person_count": "12"},
        {"camera_id": "cam-ghat", "person_count": 3, "confidence_score": 1.5},
        {"camera_id": "cam-ghat", "person_count": 3, "confidence_score": -0.1},
        {"camera_id": "cam-ghat", "person_count": 3, "metadata": ["not", "a", "map"]},
    ],
)
def test_invalid_payloads_are_rejected(ingestor, seeded_store, metrics, payload) -> None:
    with pytest.raises(ValidationError):
        ingestor.ingest(payload)
    assert seeded_store.fetch_readings() == []
    assert metrics.sample("crowd_readings_rejected_total", reason="invalid") == 1


def test_defaults_applied() -> None:
    validated = validate_reading({"camera_id": "cam-1", "person_count": 0})
    assert validated.confidence_score == 0.0
    assert validated.metadata == {}
    assert validated.location_id is None


def test_valid_reading_is_persisted_with_server_timestamp(ingestor, seeded_store, clock) -> None:
    result = ingestor.ingest(
        {
            "camera_id": "cam-ghat",
            "location_id": "ghat",
            "person_count": 120,
            "confidence_score": 0.87,
            "metadata": {"frame": 42},
        }
    )
    stored = seeded_store.fetch_readings()
    assert stored == [result.reading]
    reading = stored[0]
    assert reading.timestamp == clock.now
    assert reading.person_count == 120
    assert 0.0 <= reading.confidence_score <= 1.0
    assert reading.metadata == {"frame": 42}
    assert result.alert is None
    assert result.alert_error is None


def test_unknown_references_raise_not_found(ingestor, seeded_store, metrics) -> None:
    with pytest.raises(NotFoundError):
        ingestor.ingest({"camera_id": "cam-x", "person_count": 1})
    with pytest.raises(NotFoundError):
        ingestor.ingest({"camera_id": "cam-ghat", "location_id": "nowhere", "person_count": 1})
    assert seeded_store.fetch_readings() == []
    assert metrics.sample("crowd_readings_rejected_total", reason="unknown_reference") == 2


def test_qualifying_readings_open_one_alert(ingestor, seeded_store, clock, metrics) -> None:
    results = []
    for count in (700, 850, 990):
        results.append(ingestor.ingest({"camera_id": "cam-ghat", "location_id": "ghat", "person_count": count}))
        clock.advance(minutes=1)

    opened = [r.alert for r in results if r.alert is not None]
    assert len(opened) == 1
    assert len(seeded_store.fetch_readings()) == 3
    assert len(seeded_store.list_alerts(status=AlertStatus.ACTIVE)) == 1
    assert metrics.sample("crowd_alerts_opened_total", severity="medium") == 1
    assert metrics.sample("crowd_readings_ingested_total", camera="cam-ghat") == 3


class ExplodingEngine:
    def evaluate(self, location_id, camera_id, person_count):
        raise StoreError("alert store unavailable")


def test_alerting_failure_does_not_lose_reading(seeded_store, clock, metrics, caplog) -> None:
    ingestor = ReadingIngestor(seeded_store, alert_engine=ExplodingEngine(), metrics=metrics, clock=clock)
    result = ingestor.ingest({"camera_id": "cam-ghat", "location_id": "ghat", "person_count": 990})

    assert result.alert is None
    assert result.alert_error == "alert store unavailable"
    assert seeded_store.fetch_readings() == [result.reading]
    assert metrics.sample("crowd_alert_evaluation_errors_total", category="StoreError") == 1
    assert "Alert evaluation failed" in caplog.text


def test_readings_are_heartbeats(seeded_store, clock) -> None:
    health = CameraHealthMonitor(timeout=60.0, clock=lambda: clock.now.timestamp())
    ingestor = ReadingIngestor(seeded_store, health=health, clock=clock)
    ingestor.ingest({"camera_id": "cam-temple", "location_id": "temple", "person_count": 4})
    assert health.is_down("cam-temple") is False
    assert health.is_down("cam-gate") is True


def test_ingest_result_serialises(ingestor) -> None:
    result = ingestor.ingest({"camera_id": "cam-temple", "location_id": "temple", "person_count": 91})
    payload = result.to_dict()
    assert payload["data"]["person_count"] == 91
    assert payload["alert"]["severity"] == "critical"
    assert payload["alert_error"] is None


def test_largest_storable_count_is_accepted(ingestor, seeded_store) -> None:
    result = ingestor.ingest({"camera_id": "cam-gate", "person_count": 2**63 - 1})
    assert seeded_store.fetch_readings()[0].person_count == 2**63 - 1
    assert result.alert is None

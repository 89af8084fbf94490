"""Entry point for the crowd monitoring pipeline.

This script wires the store, the threshold alert engine, the camera
heartbeat monitor and the metrics exporter together from a YAML
configuration file, and exposes the core operations as subcommands.
Results are printed as JSON.

Usage
-----
```bash
python run_pipeline.py --config configs/default.yaml init-db
python run_pipeline.py --config configs/default.yaml add-location --name "Kala Ram Temple" --latitude 20.0063 --longitude 73.7897 --capacity 300
python run_pipeline.py --config configs/default.yaml add-camera --id cam-1 --name "Ghat East" --location-id ram-kund-main-ghat
python run_pipeline.py --config configs/default.yaml update-camera cam-1 --status maintenance
python run_pipeline.py --config configs/default.yaml ingest readings.jsonl
python run_pipeline.py --config configs/default.yaml summary --hours 24
python run_pipeline.py --config configs/default.yaml heatmap
python run_pipeline.py --config configs/default.yaml set-alert-status <alert-id> resolved
```

`ingest` reads one JSON payload per line (``-`` for stdin), e.g.
``{"camera_id": "cam-1", "location_id": "ram-kund-main-ghat", "person_count": 420}``.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, TextIO

import yaml

from analytics.camera_health import CameraHealthMonitor
from analytics.crowd_analytics import recent_readings, summarize
from analytics.dashboard_stats import snapshot
from analytics.heat_map import heat_map_payload
from ingestion import ReadingIngestor, RegistryManager
from monitoring import MetricsExporter
from rules import AlertManager, SeverityThresholds, ThresholdAlertEngine
from schemas import Camera, CameraStatus, CrowdMonitorError, Location
from storage import AuditLogger, CrowdDataStore

logger = logging.getLogger("crowd_monitor")


def load_config(config_path: str | Path) -> dict:
    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


@dataclass
class Services:
    """The wired-up core components for one configuration."""

    config: dict
    store: CrowdDataStore
    engine: ThresholdAlertEngine
    alerts: AlertManager
    ingestor: ReadingIngestor
    registry: RegistryManager
    health: Optional[CameraHealthMonitor] = None
    metrics: Optional[MetricsExporter] = None

    def close(self) -> None:
        self.store.close()


def build_services(config: dict) -> Services:
    storage_cfg = config.get("storage", {})
    store = CrowdDataStore(storage_cfg.get("db_path", "crowd.db"))
    audit = AuditLogger(storage_cfg.get("log_dir", "logs"))

    monitoring_cfg = config.get("monitoring", {})
    metrics: MetricsExporter | None = None
    if monitoring_cfg.get("enable", False):
        metrics = MetricsExporter(port=monitoring_cfg.get("metrics_port", 9095))

    thresholds = SeverityThresholds.from_config(config.get("alerts", {}).get("thresholds"))
    engine = ThresholdAlertEngine(store, thresholds=thresholds, metrics=metrics)

    health_cfg = config.get("camera_health", {})
    health: CameraHealthMonitor | None = None
    if health_cfg.get("enable", False):
        health = CameraHealthMonitor(timeout=health_cfg.get("timeout", 300.0))
        health.load_from(store)

    ingestor = ReadingIngestor(store, alert_engine=engine, health=health, metrics=metrics)
    return Services(
        config=config,
        store=store,
        engine=engine,
        alerts=AlertManager(store, audit=audit),
        ingestor=ingestor,
        registry=RegistryManager(store),
        health=health,
        metrics=metrics,
    )


def seed_registry(services: Services) -> Dict[str, int]:
    """Write the locations and cameras listed in the config, skipping existing ones."""
    locations = 0
    for entry in services.config.get("locations", []) or []:
        services.store.upsert_location(Location(**entry))
        locations += 1
    cameras = 0
    for entry in services.config.get("cameras", []) or []:
        if services.store.get_camera(entry["id"]) is None:
            fields = dict(entry)
            fields["status"] = CameraStatus(fields.get("status", CameraStatus.OFFLINE.value))
            services.store.add_camera(Camera(**fields))
            cameras += 1
    return {"locations": locations, "cameras": cameras}


def iter_payloads(stream: TextIO) -> Iterable[Dict[str, Any]]:
    for lineno, line in enumerate(stream, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            yield json.loads(line)
        except json.JSONDecodeError as exc:
            logger.warning("Skipping line %d: not valid JSON (%s)", lineno, exc)


def ingest_stream(services: Services, stream: TextIO, out: TextIO) -> Dict[str, int]:
    accepted = rejected = alerts = 0
    for payload in iter_payloads(stream):
        try:
            result = services.ingestor.ingest(payload)
        except CrowdMonitorError as exc:
            rejected += 1
            logger.warning("Rejected reading %s: %s", payload, exc)
            continue
        accepted += 1
        if result.alert is not None:
            alerts += 1
        out.write(json.dumps(result.to_dict()) + "\n")
    if services.health is not None:
        services.health.sync(services.store)
    return {"accepted": accepted, "rejected": rejected, "alerts_opened": alerts}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crowd reading ingestion, analytics and alerting.")
    parser.add_argument("--config", type=str, default="configs/default.yaml", help="Path to configuration file.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and seed locations/cameras from the config.")

    loc = sub.add_parser("add-location", help="Register a location.")
    loc.add_argument("--id")
    loc.add_argument("--name", required=True)
    loc.add_argument("--latitude", type=float, required=True)
    loc.add_argument("--longitude", type=float, required=True)
    loc.add_argument("--capacity", type=int)
    loc.add_argument("--area-type")
    loc.add_argument("--description")

    sub.add_parser("locations", help="List locations.")

    cam = sub.add_parser("add-camera", help="Register a camera.")
    cam.add_argument("--id")
    cam.add_argument("--name", required=True)
    cam.add_argument("--type", dest="camera_type", default="fixed")
    cam.add_argument("--location-id")
    cam.add_argument("--stream-url")
    cam.add_argument("--latitude", type=float)
    cam.add_argument("--longitude", type=float)

    sub.add_parser("cameras", help="List cameras with their locations.")

    update_cam = sub.add_parser("update-camera", help="Change a camera's status, stream or position.")
    update_cam.add_argument("camera_id")
    update_cam.add_argument("--status")
    update_cam.add_argument("--stream-url")
    update_cam.add_argument("--latitude", type=float)
    update_cam.add_argument("--longitude", type=float)

    delete_cam = sub.add_parser("delete-camera", help="Remove a camera.")
    delete_cam.add_argument("camera_id")

    ingest = sub.add_parser("ingest", help="Ingest JSON-lines readings from a file or stdin.")
    ingest.add_argument("source", nargs="?", default="-")

    readings = sub.add_parser("readings", help="List recent readings.")
    readings.add_argument("--camera-id")
    readings.add_argument("--location-id")
    readings.add_argument("--hours", type=int, default=24)
    readings.add_argument("--limit", type=int, default=100)

    summary = sub.add_parser("summary", help="Windowed crowd analytics.")
    summary.add_argument("--location-id")
    summary.add_argument("--hours", type=int)

    heat = sub.add_parser("heatmap", help="Heat-map intensity points.")
    heat.add_argument("--hours", type=int)

    sub.add_parser("snapshot", help="Dashboard headline figures.")

    alerts = sub.add_parser("alerts", help="List alerts.")
    alerts.add_argument("--status")
    alerts.add_argument("--severity")
    alerts.add_argument("--limit", type=int, default=50)

    raise_alert = sub.add_parser("raise-alert", help="Raise a manual alert.")
    raise_alert.add_argument("--title", required=True)
    raise_alert.add_argument("--description", required=True)
    raise_alert.add_argument("--severity", required=True)
    raise_alert.add_argument("--location-id")
    raise_alert.add_argument("--camera-id")
    raise_alert.add_argument("--actor")

    status = sub.add_parser("set-alert-status", help="Move an alert to a new status.")
    status.add_argument("alert_id")
    status.add_argument("status")
    status.add_argument("--actor")
    return parser


def run_command(args: argparse.Namespace, services: Services, out: TextIO) -> Any:
    config = services.config
    if args.command == "init-db":
        return seed_registry(services)
    if args.command == "add-location":
        location = services.registry.add_location(
            {
                "id": args.id,
                "name": args.name,
                "latitude": args.latitude,
                "longitude": args.longitude,
                "capacity": args.capacity,
                "area_type": args.area_type,
                "description": args.description,
            }
        )
        return {"data": location.to_dict()}
    if args.command == "locations":
        found = services.registry.list_locations()
        return {"data": [loc.to_dict() for loc in found], "count": len(found)}
    if args.command == "add-camera":
        camera = services.registry.add_camera(
            {
                "id": args.id,
                "name": args.name,
                "camera_type": args.camera_type,
                "location_id": args.location_id,
                "stream_url": args.stream_url,
                "latitude": args.latitude,
                "longitude": args.longitude,
            }
        )
        return {"data": camera.to_dict()}
    if args.command == "cameras":
        rows = services.registry.list_cameras()
        return {"data": rows, "count": len(rows)}
    if args.command == "update-camera":
        changes = {
            "status": args.status,
            "stream_url": args.stream_url,
            "latitude": args.latitude,
            "longitude": args.longitude,
        }
        camera = services.registry.update_camera(
            args.camera_id, {k: v for k, v in changes.items() if v is not None}
        )
        return {"data": camera.to_dict()}
    if args.command == "delete-camera":
        services.registry.delete_camera(args.camera_id)
        return {"message": "Camera deleted successfully"}
    if args.command == "ingest":
        if args.source == "-":
            return ingest_stream(services, sys.stdin, out)
        with open(args.source, "r", encoding="utf-8") as f:
            return ingest_stream(services, f, out)
    if args.command == "readings":
        rows = recent_readings(
            services.store,
            camera_id=args.camera_id,
            location_id=args.location_id,
            hours=args.hours,
            limit=args.limit,
        )
        return {"data": rows, "count": len(rows)}
    if args.command == "summary":
        analytics_cfg = config.get("analytics", {})
        result = summarize(
            services.store,
            location_id=args.location_id,
            window_hours=args.hours if args.hours is not None else analytics_cfg.get("default_hours", 24),
            breakdown_key=analytics_cfg.get("breakdown_key", "name"),
        )
        return {"analytics": result.to_dict()}
    if args.command == "heatmap":
        heat_cfg = config.get("heat_map", {})
        return heat_map_payload(
            services.store,
            window_hours=args.hours if args.hours is not None else heat_cfg.get("default_hours", 1),
            group_by=heat_cfg.get("group_by", "coordinates"),
        )
    if args.command == "snapshot":
        if services.health is not None:
            services.health.sync(services.store)
        return {"stats": snapshot(services.store).to_dict()}
    if args.command == "alerts":
        found = services.alerts.list_alerts(status=args.status, severity=args.severity, limit=args.limit)
        return {"data": [a.to_dict() for a in found], "count": len(found)}
    if args.command == "raise-alert":
        alert = services.alerts.create_manual_alert(
            title=args.title,
            description=args.description,
            severity=args.severity,
            location_id=args.location_id,
            camera_id=args.camera_id,
            created_by=args.actor,
        )
        return {"data": alert.to_dict()}
    if args.command == "set-alert-status":
        alert = services.alerts.update_status(args.alert_id, args.status, actor=args.actor)
        return {"data": alert.to_dict()}
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None, out: TextIO = sys.stdout) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    logging.basicConfig(
        level=config.get("logging", {}).get("level", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    services = build_services(config)
    try:
        result = run_command(args, services, out)
    except CrowdMonitorError as exc:
        logger.error("%s failed: %s", args.command, exc)
        out.write(json.dumps({"error": str(exc), "kind": exc.__class__.__name__}) + "\n")
        return 1
    finally:
        services.close()
    out.write(json.dumps(result, default=str) + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import io
import json

import pytest
import yaml

from run_pipeline import main


def write_config(tmp_path) -> str:
    config = {
        "storage": {"db_path": str(tmp_path / "crowd.db"), "log_dir": str(tmp_path / "logs")},
        "camera_health": {"enable": True, "timeout": 300},
        "locations": [
            {"id": "ghat", "name": "Main Ghat", "capacity": 100, "latitude": 19.99, "longitude": 73.78},
        ],
        "cameras": [{"id": "cam-1", "name": "East", "location_id": "ghat"}],
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config))
    return str(path)


def run(argv) -> tuple:
    out = io.StringIO()
    code = main(argv, out=out)
    lines = [json.loads(line) for line in out.getvalue().splitlines() if line.strip()]
    return code, lines


def test_end_to_end_cli(tmp_path) -> None:
    config = write_config(tmp_path)
    code, lines = run(["--config", config, "init-db"])
    assert code == 0
    assert lines[-1] == {"locations": 1, "cameras": 1}

    readings = tmp_path / "readings.jsonl"
    readings.write_text(
        "\n".join(
            [
                json.dumps({"camera_id": "cam-1", "location_id": "ghat", "person_count": 80}),
                json.dumps({"camera_id": "cam-1", "location_id": "ghat", "person_count": 85}),
                json.dumps({"camera_id": "cam-1", "person_count": -4}),
                "not json",
            ]
        )
    )
    code, lines = run(["--config", config, "ingest", str(readings)])
    assert code == 0
    assert lines[-1] == {"accepted": 2, "rejected": 1, "alerts_opened": 1}
    alert_id = lines[0]["alert"]["id"]

    code, lines = run(["--config", config, "snapshot"])
    assert lines[-1]["stats"]["activeCameras"] == 1
    assert lines[-1]["stats"]["activeAlerts"] == 1

    code, lines = run(["--config", config, "summary"])
    assert lines[-1]["analytics"]["peakCrowd"] == 85

    code, lines = run(["--config", config, "set-alert-status", alert_id, "resolved", "--actor", "op"])
    assert code == 0
    assert lines[-1]["data"]["status"] == "resolved"
    assert lines[-1]["data"]["resolved_at"] is not None

    code, lines = run(["--config", config, "set-alert-status", alert_id, "active"])
    assert code == 1
    assert lines[-1]["kind"] == "InvalidTransitionError"


@pytest.mark.parametrize("command", ["summary", "heatmap"])
def test_zero_hour_window_is_rejected(tmp_path, command) -> None:
    config = write_config(tmp_path)
    code, lines = run(["--config", config, command, "--hours", "0"])
    assert code == 1
    assert lines[-1]["kind"] == "ValidationError"


def test_registry_commands(tmp_path) -> None:
    config = write_config(tmp_path)
    run(["--config", config, "init-db"])

    code, lines = run(
        ["--config", config, "add-location", "--id", "temple", "--name", "Kala Ram Temple",
         "--latitude", "20.0063", "--longitude", "73.7897", "--capacity", "300"]
    )
    assert code == 0
    assert lines[-1]["data"]["capacity"] == 300
    code, lines = run(["--config", config, "locations"])
    assert [loc["id"] for loc in lines[-1]["data"]] == ["temple", "ghat"]

    code, lines = run(["--config", config, "add-camera", "--id", "cam-2", "--name", "West", "--location-id", "nowhere"])
    assert code == 1
    assert lines[-1]["kind"] == "NotFoundError"

    code, lines = run(["--config", config, "add-camera", "--id", "cam-2", "--name", "West", "--location-id", "temple"])
    assert code == 0
    assert lines[-1]["data"]["status"] == "offline"

    code, lines = run(["--config", config, "cameras"])
    assert lines[-1]["count"] == 2
    by_id = {row["id"]: row for row in lines[-1]["data"]}
    assert by_id["cam-2"]["location"]["name"] == "Kala Ram Temple"

    code, lines = run(["--config", config, "update-camera", "cam-2", "--status", "maintenance"])
    assert code == 0
    assert lines[-1]["data"]["status"] == "maintenance"

    code, lines = run(["--config", config, "delete-camera", "cam-2"])
    assert code == 0
    code, lines = run(["--config", config, "delete-camera", "cam-2"])
    assert code == 1
    assert lines[-1]["kind"] == "NotFoundError"

"""Streamlit dashboard application.

This dashboard shows the crowd monitor's headline figures, the windowed
analytics (hour-of-day profile and per-location breakdown), the heat
map and the alert queue. Operators can move alerts through their
lifecycle from the sidebar.

Run it from the repository root after installing the project:

    streamlit run dashboard/app.py
"""

import warnings
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
import streamlit as st
import yaml

from analytics.crowd_analytics import summarize
from analytics.dashboard_stats import snapshot
from analytics.heat_map import heat_map
from rules import AlertManager
from schemas import AlertStatus, CrowdMonitorError
from storage import AuditLogger, CrowdDataStore


def load_config() -> dict:
    """Load the dashboard configuration file.

    Returns
    -------
    config : dict
        The parsed YAML configuration dictionary.
    """
    config_path = Path(__file__).resolve().parents[1] / "configs" / "default.yaml"
    try:
        with open(config_path, "r") as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        warnings.warn(f"Config not found at {config_path}; using built-in defaults.", stacklevel=2)
        return {}


@st.cache_resource
def open_store(db_path: str) -> CrowdDataStore:
    return CrowdDataStore(db_path)


def alerts_frame(alerts: List[Dict[str, Any]]) -> pd.DataFrame:
    columns = ["created_at", "severity", "status", "title", "description", "trigger_source", "id"]
    return pd.DataFrame(alerts, columns=columns)


def main() -> None:
    """Main entry point for the Streamlit dashboard."""
    st.set_page_config(page_title="Crowd Monitor", layout="wide")
    st.title("Crowd Monitor")

    config = load_config()
    storage_cfg = config.get("storage", {})
    store = open_store(storage_cfg.get("db_path", "crowd.db"))
    manager = AlertManager(store, audit=AuditLogger(storage_cfg.get("log_dir", "logs")))
    analytics_cfg = config.get("analytics", {})
    heat_cfg = config.get("heat_map", {})

    # Sidebar: window selection and alert handling
    st.sidebar.header("Window")
    hours = st.sidebar.number_input(
        "Analytics window (hours)", min_value=1, max_value=168, value=int(analytics_cfg.get("default_hours", 24))
    )
    heat_hours = st.sidebar.number_input(
        "Heat map window (hours)", min_value=1, max_value=24, value=int(heat_cfg.get("default_hours", 1))
    )

    st.sidebar.header("Update alert")
    open_alerts = manager.list_alerts(status=AlertStatus.ACTIVE) + manager.list_alerts(status=AlertStatus.INVESTIGATING)
    if open_alerts:
        labels = {f"{a.title} ({a.status.value})": a.id for a in open_alerts}
        choice = st.sidebar.selectbox("Alert", list(labels))
        new_status = st.sidebar.selectbox("New status", [s.value for s in AlertStatus if s is not AlertStatus.ACTIVE])
        if st.sidebar.button("Apply"):
            try:
                manager.update_status(labels[choice], new_status, actor="dashboard")
                st.sidebar.success(f"Alert moved to {new_status}.")
            except CrowdMonitorError as exc:
                st.sidebar.error(str(exc))
    else:
        st.sidebar.write("No open alerts.")

    # Headline figures
    stats = snapshot(store)
    cols = st.columns(4)
    cols[0].metric("Active cameras", stats.active_cameras)
    cols[1].metric("Current crowd", stats.current_crowd)
    cols[2].metric("Active alerts", stats.active_alerts)
    cols[3].metric("Capacity usage", f"{stats.capacity_usage}%", help=f"of {stats.total_capacity} total capacity")

    # Windowed analytics
    st.header("Crowd analytics")
    summary = summarize(store, window_hours=int(hours), breakdown_key=analytics_cfg.get("breakdown_key", "name"))
    st.write(
        f"{summary.total_readings} readings, average {summary.average_crowd}, "
        f"peak {summary.peak_crowd}, utilisation {summary.capacity_utilization}%"
    )
    if summary.hourly_data:
        hourly = pd.DataFrame([b.to_dict() for b in summary.hourly_data]).set_index("hour")
        st.line_chart(hourly)
    if summary.location_breakdown:
        breakdown = pd.DataFrame.from_dict(
            {k: v.to_dict() for k, v in summary.location_breakdown.items()}, orient="index"
        )
        st.dataframe(breakdown)

    # Heat map
    st.header("Heat map")
    points = heat_map(store, window_hours=int(heat_hours), group_by=heat_cfg.get("group_by", "coordinates"))
    if points:
        df = pd.DataFrame([p.to_dict() for p in points])
        st.map(df, latitude="latitude", longitude="longitude", size="intensity")
        st.dataframe(df)
    else:
        st.write("No located readings in this window.")

    # Alert queue
    st.header("Alerts")
    recent_alerts = [a.to_dict() for a in manager.list_alerts(limit=50)]
    if recent_alerts:
        st.dataframe(alerts_frame(recent_alerts))
    else:
        st.write("No alerts raised yet.")

    if st.button("Refresh"):
        st.rerun()


if __name__ == "__main__":
    main()

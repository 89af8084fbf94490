"""Rules package.

This package decides when crowd readings turn into alerts and governs
what happens to alerts afterwards. `ThresholdAlertEngine` maps a reading
onto a severity using capacity thresholds and opens at most one live
incident per location; `AlertManager` handles manual alerts and status
transitions.
"""

from .alert_lifecycle import AlertManager
from .threshold_alerts import SeverityThresholds, ThresholdAlertEngine

__all__ = ["AlertManager", "SeverityThresholds", "ThresholdAlertEngine"]

"""Error kinds raised by the crowd monitoring core.

Callers (the CLI, the dashboard, or an HTTP layer) map these onto their
own status conventions. None of them is retried inside the core.
"""

from __future__ import annotations


class CrowdMonitorError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(CrowdMonitorError):
    """A required input field is missing or invalid."""


class NotFoundError(CrowdMonitorError):
    """A referenced location, camera or alert does not exist."""


class StoreError(CrowdMonitorError):
    """The underlying store is unavailable or a query failed."""


class InvalidTransitionError(CrowdMonitorError):
    """An alert status change is not permitted from its current state."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot move alert from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested

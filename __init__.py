"""Crowd Monitor.

This package ingests per-camera person counts, raises capacity alerts
when a location fills up, and aggregates readings into windowed
analytics, heat-map points and dashboard figures. See DESIGN.md for
how the pieces fit together.
"""

__all__ = []

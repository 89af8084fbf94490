"""Windowed crowd analytics, heat maps, camera health and dashboard stats."""

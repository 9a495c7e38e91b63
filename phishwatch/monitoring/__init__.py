"""Monitoring helpers (health endpoints)."""

from .health import HealthServer

__all__ = ["HealthServer"]

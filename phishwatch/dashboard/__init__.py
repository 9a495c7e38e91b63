"""Dashboard HTTP API."""

from .api import DashboardServer

__all__ = ["DashboardServer"]

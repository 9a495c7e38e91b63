"""Domain checking and watchlist monitoring."""

from .checker import DomainChecker
from .monitor import WatchlistMonitor
from .records import CheckRecorder
from .watchlist import Alert, Watchlist, WatchlistEntry, should_alert

__all__ = [
    "Alert",
    "CheckRecorder",
    "DomainChecker",
    "Watchlist",
    "WatchlistEntry",
    "WatchlistMonitor",
    "should_alert",
]

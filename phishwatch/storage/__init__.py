"""Storage modules for PhishWatch."""

from .database import Database, RecordType
from .evidence import BaselineStore, ScreenshotStore

__all__ = ["BaselineStore", "Database", "RecordType", "ScreenshotStore"]

"""Exception types raised by PhishWatch components."""

from __future__ import annotations


class PhishWatchError(Exception):
    """Base error for PhishWatch."""


class CaptureError(PhishWatchError):
    """Page rendering or extraction failed."""

    def __init__(self, target: str, message: str):
        self.target = target
        self.message = message
        super().__init__(f"{target}: {message}")


class CaptureTimeout(CaptureError):
    """Target did not respond within the capture timeout."""


class BaselineMissingError(PhishWatchError):
    """No baseline snapshot is available and one could not be captured."""


class PersistenceError(PhishWatchError):
    """A record or snapshot could not be written."""

"""Centralized constants for PhishWatch.

Enums and default tunables shared by the scoring pipeline, the monitor and
the configuration layer.
"""

from __future__ import annotations

from enum import Enum


class ThreatLevel(str, Enum):
    """Discrete classification of a checked domain."""

    CRITICAL = "critical"
    WARNING = "warning"
    SUSPICIOUS = "suspicious"
    SAFE = "safe"
    LEGITIMATE = "legitimate"

    @property
    def severity(self) -> int:
        """Rank for comparisons; higher is more severe."""
        return _SEVERITY[self]

    @property
    def is_high(self) -> bool:
        return self in HIGH_SEVERITY_LEVELS

    @classmethod
    def from_string(cls, value: str | None) -> "ThreatLevel | None":
        if not value:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None

    def __str__(self) -> str:
        return self.value


_SEVERITY = {
    ThreatLevel.LEGITIMATE: 0,
    ThreatLevel.SAFE: 1,
    ThreatLevel.SUSPICIOUS: 2,
    ThreatLevel.WARNING: 3,
    ThreatLevel.CRITICAL: 4,
}

HIGH_SEVERITY_LEVELS = frozenset({ThreatLevel.CRITICAL, ThreatLevel.WARNING})

# Signal weights (must sum to 1.0)
DEFAULT_SIGNAL_WEIGHTS: dict[str, float] = {
    "visual": 0.30,
    "text": 0.25,
    "dom": 0.20,
    "keywords": 0.15,
    "forms": 0.10,
}

# Lower edges, inclusive
DEFAULT_THREAT_THRESHOLDS: dict[str, int] = {
    "critical": 85,
    "warning": 70,
    "suspicious": 55,
}

# DOM capture and comparison bounds
DOM_MAX_DEPTH = 5
DOM_MAX_CHILDREN = 10
# Score for node pairs past the depth cap: unknown, not a mismatch
DOM_DEPTH_CAP_SCORE = 0.5

# Visual comparison
VISUAL_CANONICAL_SIZE = (256, 256)
VISUAL_PIXEL_THRESHOLD = 0.1

DEFAULT_WHITELIST: tuple[str, ...] = (
    "combankdigital.com",
    "combank.com",
    "combank.lk",
)

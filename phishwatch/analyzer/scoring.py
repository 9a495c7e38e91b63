"""Composite risk scoring and threat classification."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Optional

from ..constants import DEFAULT_SIGNAL_WEIGHTS, DEFAULT_THREAT_THRESHOLDS, ThreatLevel
from .models import ScoreSet


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def composite_score(scores: ScoreSet, weights: Optional[Mapping[str, float]] = None) -> int:
    """Weighted sum of the five signals, rounded to an integer in [0, 100]."""
    w = weights or DEFAULT_SIGNAL_WEIGHTS
    total = (
        scores.visual * w["visual"]
        + scores.text * w["text"]
        + scores.dom * w["dom"]
        + scores.keywords * w["keywords"]
        + scores.forms * w["forms"]
    )
    return clamp_score(total)


@dataclass(frozen=True)
class ThreatThresholds:
    """Inclusive lower edges for each threat level."""

    critical: int = DEFAULT_THREAT_THRESHOLDS["critical"]
    warning: int = DEFAULT_THREAT_THRESHOLDS["warning"]
    suspicious: int = DEFAULT_THREAT_THRESHOLDS["suspicious"]

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, int]]) -> "ThreatThresholds":
        merged = {**DEFAULT_THREAT_THRESHOLDS, **(data or {})}
        return cls(
            critical=int(merged["critical"]),
            warning=int(merged["warning"]),
            suspicious=int(merged["suspicious"]),
        )

    def to_dict(self) -> dict:
        return {"critical": self.critical, "warning": self.warning, "suspicious": self.suspicious}


def classify_threat(
    composite: int,
    is_filtered: bool,
    thresholds: Optional[ThreatThresholds] = None,
) -> ThreatLevel:
    if is_filtered:
        return ThreatLevel.LEGITIMATE
    t = thresholds or ThreatThresholds()
    if composite >= t.critical:
        return ThreatLevel.CRITICAL
    if composite >= t.warning:
        return ThreatLevel.WARNING
    if composite >= t.suspicious:
        return ThreatLevel.SUSPICIOUS
    return ThreatLevel.SAFE

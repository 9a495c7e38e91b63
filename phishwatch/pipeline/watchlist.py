"""Watchlist entries, alerts and the alert edge rule."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, Optional

from ..analyzer.models import CompositeResult, ScoreSet, parse_timestamp
from ..constants import ThreatLevel
from ..utils.domains import canonicalize_domain


def should_alert(previous_active: bool, result: CompositeResult) -> bool:
    """Alert only on the inactive -> active edge with an unfiltered high level."""
    return (
        not previous_active
        and result.reachable
        and result.threat_level.is_high
        and not result.is_filtered
    )


@dataclass
class WatchlistEntry:
    """Per-domain monitor state; mutated in place by each scan."""

    domain: str
    source: str = "manual"
    added_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    checked: bool = False
    is_active: bool = False
    threat_level: Optional[ThreatLevel] = None
    similarity: Optional[int] = None
    last_checked: Optional[datetime] = None
    screenshot_ref: Optional[str] = None
    scores: Optional[ScoreSet] = None

    @property
    def state(self) -> str:
        if not self.checked:
            return "never_checked"
        return "active" if self.is_active else "inactive"

    def apply(self, result: CompositeResult) -> bool:
        """Fold a check result into the entry; returns the previous is_active."""
        previous_active = self.is_active
        self.checked = True
        self.is_active = result.reachable
        self.last_checked = result.checked_at
        if result.reachable:
            self.threat_level = result.threat_level
            self.similarity = result.composite_score
            self.scores = result.scores
            self.screenshot_ref = result.screenshot_ref
        else:
            self.threat_level = None
            self.similarity = 0
            self.scores = None
        return previous_active

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "source": self.source,
            "added_at": self.added_at.isoformat(),
            "checked": self.checked,
            "state": self.state,
            "is_active": self.is_active,
            "threat_level": self.threat_level.value if self.threat_level else None,
            "similarity": self.similarity,
            "last_checked": self.last_checked.isoformat() if self.last_checked else None,
            "screenshot_ref": self.screenshot_ref,
            "scores": self.scores.to_dict() if self.scores else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WatchlistEntry":
        return cls(
            domain=str(data["domain"]),
            source=str(data.get("source") or "manual"),
            added_at=parse_timestamp(data["added_at"]) if data.get("added_at") else datetime.now(timezone.utc),
            checked=bool(data.get("checked")),
            is_active=bool(data.get("is_active")),
            threat_level=ThreatLevel.from_string(data.get("threat_level")),
            similarity=data.get("similarity"),
            last_checked=parse_timestamp(data["last_checked"]) if data.get("last_checked") else None,
            screenshot_ref=data.get("screenshot_ref"),
            scores=ScoreSet.from_dict(data.get("scores")),
        )


@dataclass(frozen=True)
class Alert:
    domain: str
    result: CompositeResult
    detected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "domain": self.domain,
            "detected_at": self.detected_at.isoformat(),
            "threat_level": self.result.threat_level.value,
            "composite_score": self.result.composite_score,
            "result": self.result.to_dict(),
        }


class Watchlist:
    """Ordered set of entries keyed by canonical domain."""

    def __init__(self):
        self._entries: dict[str, WatchlistEntry] = {}

    @staticmethod
    def key(domain: str) -> str:
        return canonicalize_domain(domain) or (domain or "").strip().lower()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, domain: str) -> bool:
        return self.key(domain) in self._entries

    def __iter__(self) -> Iterator[WatchlistEntry]:
        return iter(list(self._entries.values()))

    def get(self, domain: str) -> Optional[WatchlistEntry]:
        return self._entries.get(self.key(domain))

    def add(self, domain: str, source: str = "manual") -> tuple[WatchlistEntry, bool]:
        """Add a domain; returns (entry, created). Existing entries are kept as-is."""
        key = self.key(domain)
        if not key:
            raise ValueError("domain is required")
        existing = self._entries.get(key)
        if existing is not None:
            return existing, False
        entry = WatchlistEntry(domain=key, source=source)
        self._entries[key] = entry
        return entry, True

    def restore(self, entry: WatchlistEntry) -> None:
        self._entries.setdefault(self.key(entry.domain), entry)

    def remove(self, domain: str) -> Optional[WatchlistEntry]:
        return self._entries.pop(self.key(domain), None)

    def domains(self) -> list[str]:
        return list(self._entries.keys())

    def position(self, domain: str) -> int:
        try:
            return self.domains().index(self.key(domain))
        except ValueError:
            return len(self._entries)

    def snapshot(self) -> list[dict]:
        return [entry.to_dict() for entry in self._entries.values()]

"""Capture, baseline and detection data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..constants import DOM_MAX_CHILDREN, DOM_MAX_DEPTH, ThreatLevel


def parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class DomNode:
    """One element of a bounded-depth structural DOM tree."""

    tag: str
    classes: tuple[str, ...] = ()
    id: str = ""
    children: tuple["DomNode", ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.tag and not self.classes and not self.children

    @classmethod
    def from_dict(cls, data: Optional[dict], depth: int = 0) -> Optional["DomNode"]:
        """Build a tree from its JSON form, applying the capture's depth/children caps."""
        if not isinstance(data, dict) or depth > DOM_MAX_DEPTH:
            return None
        children = []
        for raw_child in (data.get("children") or [])[:DOM_MAX_CHILDREN]:
            child = cls.from_dict(raw_child, depth + 1)
            if child is not None:
                children.append(child)
        return cls(
            tag=str(data.get("tag") or ""),
            classes=tuple(str(c) for c in (data.get("classes") or []) if c),
            id=str(data.get("id") or ""),
            children=tuple(children),
        )

    def to_dict(self) -> dict:
        payload: dict = {"tag": self.tag, "classes": list(self.classes), "id": self.id}
        if self.children:
            payload["children"] = [child.to_dict() for child in self.children]
        return payload


@dataclass(frozen=True)
class FormField:
    type: str = ""
    name: str = ""
    id: str = ""
    placeholder: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "FormField":
        return cls(
            type=str(data.get("type") or ""),
            name=str(data.get("name") or ""),
            id=str(data.get("id") or ""),
            placeholder=str(data.get("placeholder") or ""),
        )

    def to_dict(self) -> dict:
        return {"type": self.type, "name": self.name, "id": self.id, "placeholder": self.placeholder}


@dataclass(frozen=True)
class FormDescriptor:
    fields: tuple[FormField, ...] = ()
    action: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "FormDescriptor":
        return cls(
            fields=tuple(FormField.from_dict(f) for f in (data.get("fields") or []) if isinstance(f, dict)),
            action=str(data.get("action") or ""),
        )

    def to_dict(self) -> dict:
        return {"fields": [f.to_dict() for f in self.fields], "action": self.action}


@dataclass(frozen=True)
class PageCapture:
    """Ephemeral observation of a host at one point in time."""

    domain: str
    text: str = ""
    dom_tree: Optional[DomNode] = None
    forms: tuple[FormDescriptor, ...] = ()
    keywords: tuple[str, ...] = ()
    screenshot_ref: Optional[str] = None
    reachable: bool = True
    url: Optional[str] = None
    title: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.text.strip() and (self.dom_tree is None or self.dom_tree.is_empty)


@dataclass(frozen=True)
class BaselineSnapshot:
    """Trusted reference capture of the protected site. Never mutated."""

    domain: str
    captured_at: datetime
    text: str
    dom_tree: Optional[DomNode]
    forms: tuple[FormDescriptor, ...]
    keywords: tuple[str, ...]
    screenshot_ref: Optional[str]
    text_hash: str
    dom_hash: str
    screenshot_phash: Optional[str] = None

    def age(self, now: Optional[datetime] = None) -> timedelta:
        now = now or datetime.now(timezone.utc)
        return now - self.captured_at

    def is_stale(self, refresh_interval: timedelta, now: Optional[datetime] = None) -> bool:
        return self.age(now) > refresh_interval

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "captured_at": self.captured_at.isoformat(),
            "text": self.text,
            "dom_tree": self.dom_tree.to_dict() if self.dom_tree else None,
            "forms": [form.to_dict() for form in self.forms],
            "keywords": list(self.keywords),
            "screenshot_ref": self.screenshot_ref,
            "text_hash": self.text_hash,
            "dom_hash": self.dom_hash,
            "screenshot_phash": self.screenshot_phash,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BaselineSnapshot":
        return cls(
            domain=str(data["domain"]),
            captured_at=parse_timestamp(data["captured_at"]),
            text=str(data.get("text") or ""),
            dom_tree=DomNode.from_dict(data.get("dom_tree")),
            forms=tuple(
                FormDescriptor.from_dict(f) for f in (data.get("forms") or []) if isinstance(f, dict)
            ),
            keywords=tuple(str(k) for k in (data.get("keywords") or []) if k),
            screenshot_ref=data.get("screenshot_ref"),
            text_hash=str(data.get("text_hash") or ""),
            dom_hash=str(data.get("dom_hash") or ""),
            screenshot_phash=data.get("screenshot_phash"),
        )


@dataclass(frozen=True)
class ScoreSet:
    """Five signal scores, each in [0, 100]."""

    visual: int = 0
    text: int = 0
    dom: int = 0
    keywords: int = 0
    forms: int = 0

    def to_dict(self) -> dict:
        return {
            "visual": self.visual,
            "text": self.text,
            "dom": self.dom,
            "keywords": self.keywords,
            "forms": self.forms,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["ScoreSet"]:
        if not data:
            return None
        return cls(**{key: int(data.get(key) or 0) for key in ("visual", "text", "dom", "keywords", "forms")})


@dataclass(frozen=True)
class FilterHit:
    """Reason code and justification for a false-positive override."""

    type: str
    reason: str
    confidence: float

    def to_dict(self) -> dict:
        return {"type": self.type, "reason": self.reason, "confidence": self.confidence}


@dataclass(frozen=True)
class CompositeResult:
    """Outcome of one domain check."""

    domain: str
    reachable: bool
    composite_score: int
    threat_level: ThreatLevel
    scores: Optional[ScoreSet] = None
    filters: tuple[FilterHit, ...] = ()
    is_filtered: bool = False
    screenshot_ref: Optional[str] = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None

    @classmethod
    def unreachable(cls, domain: str, error: Optional[str] = None) -> "CompositeResult":
        return cls(
            domain=domain,
            reachable=False,
            composite_score=0,
            threat_level=ThreatLevel.SAFE,
            error=error,
        )

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "reachable": self.reachable,
            "composite_score": self.composite_score,
            "scores": self.scores.to_dict() if self.scores else {},
            "filters": [hit.to_dict() for hit in self.filters],
            "is_filtered": self.is_filtered,
            "threat_level": self.threat_level.value,
            "screenshot_ref": self.screenshot_ref,
            "checked_at": self.checked_at.isoformat(),
            "error": self.error,
        }

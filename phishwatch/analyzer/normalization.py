"""Content normalization applied before hashing and comparison.

Legitimate pages embed session ids, timestamps and nonces that change on
every load. Redacting them keeps the baseline hashes stable and stops the
text/DOM signals from drifting on noise.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Iterable, Optional

from .models import DomNode

VOLATILE_PATTERNS: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"\d{4}-\d{2}-\d{2}"), "DATE"),
    (re.compile(r"\d{2}:\d{2}:\d{2}"), "TIME"),
    (re.compile(r"\d{13,}"), "TIMESTAMP"),
    (re.compile(r"[a-f0-9]{32,}", re.IGNORECASE), "HASH"),
)


def redact_volatile(text: Optional[str]) -> str:
    """Replace date, time, long-numeric and long-hex substrings with placeholders."""
    result = text or ""
    for pattern, token in VOLATILE_PATTERNS:
        result = pattern.sub(token, result)
    return result


def normalize_dom(node: Optional[DomNode]) -> Optional[DomNode]:
    """Redact volatile ids and class names throughout a DOM tree."""
    if node is None:
        return None
    return DomNode(
        tag=node.tag,
        classes=tuple(redact_volatile(c) for c in node.classes),
        id=redact_volatile(node.id),
        children=tuple(normalize_dom(child) for child in node.children),
    )


def dedupe_keywords(keywords: Iterable[str]) -> tuple[str, ...]:
    """Lower-case, strip and deduplicate keywords, keeping first-seen order."""
    seen: dict[str, None] = {}
    for keyword in keywords:
        value = (keyword or "").strip().lower()
        if value:
            seen.setdefault(value, None)
    return tuple(seen)


def hash_content(content: str) -> str:
    return hashlib.sha256((content or "").encode("utf-8")).hexdigest()


def dom_hash(node: Optional[DomNode]) -> str:
    payload = json.dumps(node.to_dict() if node else None, sort_keys=True, separators=(",", ":"))
    return hash_content(payload)

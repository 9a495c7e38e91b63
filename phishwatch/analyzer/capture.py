"""Capture interface and conversion of raw page extractions."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol

from .models import DomNode, FormDescriptor, PageCapture
from .normalization import dedupe_keywords, normalize_dom, redact_volatile


class PageCapturer(Protocol):
    """Turns a host into a PageCapture or raises CaptureError/CaptureTimeout."""

    async def capture(self, target: str, timeout: float, screenshot_path: Path) -> PageCapture:  # pragma: no cover - interface
        ...


def capture_from_payload(
    domain: str,
    payload: dict,
    *,
    screenshot_ref: Optional[str] = None,
    url: Optional[str] = None,
    title: Optional[str] = None,
) -> PageCapture:
    """Build a normalized PageCapture from the page's extracted JSON payload.

    Expected keys: ``text``, ``keywords``, ``forms`` (``[{fields, action}]``)
    and ``domStructure``.
    """
    return PageCapture(
        domain=domain,
        text=redact_volatile(payload.get("text") or ""),
        dom_tree=normalize_dom(DomNode.from_dict(payload.get("domStructure"))),
        forms=tuple(
            FormDescriptor.from_dict(form) for form in (payload.get("forms") or []) if isinstance(form, dict)
        ),
        keywords=dedupe_keywords(payload.get("keywords") or []),
        screenshot_ref=screenshot_ref,
        reachable=True,
        url=url,
        title=title,
    )

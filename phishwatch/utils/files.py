"""Filesystem helpers."""

from __future__ import annotations

from pathlib import Path


def safe_filename_component(
    value: str,
    *,
    max_length: int | None = None,
    default: str = "unknown",
    lower: bool = False,
) -> str:
    """Convert a string into a filesystem-friendly filename component."""
    raw = (value or "").strip()
    if not raw:
        return default
    if lower:
        raw = raw.lower()
    safe = "".join(c if c.isalnum() or c in ".-" else "_" for c in raw)
    if max_length:
        safe = safe[:max_length]
    return safe


def write_text_atomic(path: Path, content: str) -> None:
    """Write a text file through a temp file so readers never see a partial write."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(content, encoding="utf-8")
    tmp_path.replace(path)

"""Domain normalization utilities."""

from __future__ import annotations

from urllib.parse import urlparse

import tldextract


def canonicalize_domain(value: str) -> str:
    """
    Normalize a domain/URL to a canonical host key.

    - Lowercase
    - Strip leading "www."
    - Preserve port (if present)
    - Ignore path/query/fragment
    """
    raw = (value or "").strip()
    if not raw:
        return ""

    candidate = raw if "://" in raw else f"https://{raw}"
    try:
        parsed = urlparse(candidate)
        port = parsed.port
    except ValueError:
        return ""
    host = (parsed.hostname or raw.split("/")[0]).strip().lower().strip(".")
    if not host:
        return ""

    if host.startswith("www.") and len(host) > 4:
        host = host[4:]

    if port:
        host = f"{host}:{port}"

    return host


def _strip_port(host: str) -> str:
    if not host:
        return ""
    if host.count(":") == 1:
        return host.split(":", 1)[0]
    return host


def domain_label(value: str) -> str:
    """Return the registrable label without suffix ("combank" for "www.combank.lk")."""
    host = _strip_port(canonicalize_domain(value))
    if not host:
        return ""
    extracted = tldextract.extract(host)
    return (extracted.domain or host.split(".")[0]).lower()

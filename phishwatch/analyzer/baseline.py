"""Baseline snapshot lifecycle for the protected site."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..errors import BaselineMissingError, CaptureError
from .capture import PageCapturer
from .models import BaselineSnapshot, PageCapture
from .normalization import dom_hash, hash_content
from .visual_similarity import perceptual_hash

logger = logging.getLogger(__name__)


def snapshot_from_capture(domain: str, capture: PageCapture, captured_at: datetime) -> BaselineSnapshot:
    return BaselineSnapshot(
        domain=domain,
        captured_at=captured_at,
        text=capture.text,
        dom_tree=capture.dom_tree,
        forms=capture.forms,
        keywords=capture.keywords,
        screenshot_ref=capture.screenshot_ref,
        text_hash=hash_content(capture.text),
        dom_hash=dom_hash(capture.dom_tree),
        screenshot_phash=perceptual_hash(capture.screenshot_ref),
    )


class BaselineManager:
    """Owns the current baseline snapshot.

    The snapshot is an immutable value swapped by reference on refresh, so a
    reader holding the previous snapshot keeps a complete, consistent copy.
    """

    def __init__(
        self,
        *,
        domain: str,
        capturer: PageCapturer,
        store,
        refresh_interval: timedelta = timedelta(hours=1),
        timeout: float = 30.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.domain = domain
        self.capturer = capturer
        self.store = store
        self.refresh_interval = refresh_interval
        self.timeout = timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._snapshot: Optional[BaselineSnapshot] = None
        self._refresh_lock = asyncio.Lock()
        self.last_error: Optional[str] = None

    def current(self) -> Optional[BaselineSnapshot]:
        return self._snapshot

    @property
    def last_update(self) -> Optional[datetime]:
        snapshot = self._snapshot
        return snapshot.captured_at if snapshot else None

    def age(self) -> Optional[timedelta]:
        snapshot = self._snapshot
        return snapshot.age(self._clock()) if snapshot else None

    def is_stale(self, snapshot: Optional[BaselineSnapshot] = None) -> bool:
        snapshot = snapshot or self._snapshot
        if snapshot is None:
            return True
        return snapshot.is_stale(self.refresh_interval, self._clock())

    async def load(self) -> Optional[BaselineSnapshot]:
        """Load the persisted snapshot into memory (no capture)."""
        try:
            snapshot = await asyncio.to_thread(self.store.load)
        except Exception as exc:
            logger.warning("Failed to load persisted baseline: %s", exc)
            return None
        if snapshot is not None and self._snapshot is None:
            self._snapshot = snapshot
            logger.info("Baseline loaded: %s captured %s", snapshot.domain, snapshot.captured_at.isoformat())
        return self._snapshot

    async def refresh(self) -> BaselineSnapshot:
        """Capture the legitimate site now and publish the new snapshot.

        Raises CaptureError when the capture fails; the previous snapshot
        stays current in that case.
        """
        async with self._refresh_lock:
            return await self._capture_baseline()

    async def _refresh_if_stale(self) -> BaselineSnapshot:
        async with self._refresh_lock:
            # Another caller may have refreshed while this one waited
            snapshot = self._snapshot
            if snapshot is not None and not self.is_stale(snapshot):
                return snapshot
            return await self._capture_baseline()

    async def _capture_baseline(self) -> BaselineSnapshot:
        logger.info("Capturing baseline website: %s", self.domain)
        captured_at = self._clock()
        screenshot_path = self.store.new_screenshot_path(captured_at)
        try:
            capture = await self.capturer.capture(self.domain, self.timeout, screenshot_path)
        except CaptureError as exc:
            self.last_error = str(exc)
            logger.error("Baseline capture failed: %s", exc)
            raise
        except Exception as exc:
            self.last_error = str(exc)
            logger.error("Baseline capture failed: %s", exc)
            raise CaptureError(self.domain, str(exc)) from exc

        if not capture.reachable or capture.is_empty:
            self.last_error = "baseline capture returned no content"
            logger.error("Baseline capture of %s returned no content; keeping previous", self.domain)
            raise CaptureError(self.domain, "baseline capture returned no content")

        snapshot = await asyncio.to_thread(snapshot_from_capture, self.domain, capture, captured_at)
        try:
            await asyncio.to_thread(self.store.save, snapshot)
        except Exception as exc:
            logger.warning("Failed to persist baseline snapshot: %s", exc)

        self._snapshot = snapshot
        self.last_error = None
        logger.info(
            "Baseline captured: %s keywords, %s forms, text hash %s",
            len(snapshot.keywords),
            len(snapshot.forms),
            snapshot.text_hash[:12],
        )
        return snapshot

    async def ensure_fresh(self) -> BaselineSnapshot:
        """Return a snapshot no older than the refresh interval when possible.

        A stale snapshot whose refresh fails is still returned; only the
        absence of any snapshot raises BaselineMissingError.
        """
        if self._snapshot is None:
            await self.load()

        snapshot = self._snapshot
        if snapshot is not None and not self.is_stale(snapshot):
            return snapshot

        if snapshot is not None:
            logger.info(
                "Baseline is %s minutes old, refreshing...",
                int(snapshot.age(self._clock()).total_seconds() // 60),
            )
        try:
            return await self._refresh_if_stale()
        except CaptureError as exc:
            if snapshot is not None:
                logger.warning("Baseline refresh failed, keeping previous snapshot: %s", exc)
                return self._snapshot or snapshot
            raise BaselineMissingError(f"No baseline available for {self.domain}: {exc}") from exc

"""Single-domain check: capture, score, classify, record."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..analyzer.baseline import BaselineManager
from ..analyzer.capture import PageCapturer
from ..analyzer.detector import PhishingDetector
from ..analyzer.models import CompositeResult
from ..analyzer.visual_similarity import hash_distance, perceptual_hash
from ..storage.evidence import ScreenshotStore
from ..utils.domains import canonicalize_domain
from .records import CheckRecorder

logger = logging.getLogger(__name__)


class DomainChecker:
    """Runs one candidate domain through the detection pipeline.

    Capture calls are serialized through one lock; a browser renders a single
    page at a time here.
    """

    def __init__(
        self,
        *,
        baseline: BaselineManager,
        capturer: PageCapturer,
        detector: PhishingDetector,
        screenshots: ScreenshotStore,
        recorder: Optional[CheckRecorder] = None,
        timeout: float = 15.0,
    ):
        self.baseline = baseline
        self.capturer = capturer
        self.detector = detector
        self.screenshots = screenshots
        self.recorder = recorder
        self.timeout = timeout
        self._capture_lock = asyncio.Lock()

    async def check(self, domain: str, *, record: bool = True) -> CompositeResult:
        """Check ``domain`` against the current baseline.

        Raises BaselineMissingError when no baseline exists. Any capture
        failure yields an unreachable, safe result.
        """
        target = canonicalize_domain(domain) or (domain or "").strip().lower()
        snapshot = await self.baseline.ensure_fresh()

        screenshot_path = self.screenshots.new_path(target)
        logger.info("Checking domain: %s", target)
        try:
            async with self._capture_lock:
                # Slack over the capture's own timeout so it can raise CaptureTimeout first.
                capture = await asyncio.wait_for(
                    self.capturer.capture(target, self.timeout, screenshot_path),
                    timeout=self.timeout + 5,
                )
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            logger.info("Domain %s timed out after %ss; treating as unreachable", target, self.timeout)
            result = CompositeResult.unreachable(target, error="timeout")
        except Exception as e:
            logger.info("Domain %s is inactive or unreachable: %s", target, e)
            result = CompositeResult.unreachable(target, error=str(e)[:200])
        else:
            # Image decoding and pixel comparison are CPU bound
            result = await asyncio.to_thread(self.detector.detect, target, snapshot, capture)

        metadata = {}
        if result.reachable and snapshot.screenshot_phash and screenshot_path.exists():
            candidate_hash = await asyncio.to_thread(perceptual_hash, screenshot_path)
            distance = hash_distance(snapshot.screenshot_phash, candidate_hash)
            if distance is not None:
                metadata["phash_distance"] = distance

        if record and self.recorder is not None:
            await self.recorder.record_check(result, metadata=metadata)
        return result

"""Phishing detection pipeline: signals, composite, filter, classification."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Mapping, Optional

from ..constants import DEFAULT_SIGNAL_WEIGHTS
from .dom_similarity import dom_similarity
from .false_positive import FalsePositiveFilter
from .form_similarity import form_similarity
from .models import BaselineSnapshot, CompositeResult, PageCapture, ScoreSet
from .scoring import ThreatThresholds, clamp_score, classify_threat, composite_score
from .text_similarity import keyword_similarity, text_similarity
from .visual_similarity import visual_similarity

logger = logging.getLogger(__name__)


class PhishingDetector:
    """Compares a candidate capture against the baseline and classifies it.

    Stateless between calls; one detector can serve the monitor and the API
    concurrently.
    """

    def __init__(
        self,
        *,
        false_positive_filter: Optional[FalsePositiveFilter] = None,
        weights: Optional[Mapping[str, float]] = None,
        thresholds: Optional[ThreatThresholds] = None,
    ):
        self.false_positive_filter = false_positive_filter or FalsePositiveFilter()
        self.weights = dict(weights or DEFAULT_SIGNAL_WEIGHTS)
        self.thresholds = thresholds or ThreatThresholds()

    def _safe_score(self, signal: str, domain: str, func: Callable[[], float]) -> int:
        """Run one signal; a failing signal degrades to 0 instead of aborting the check."""
        try:
            return clamp_score(func())
        except Exception as exc:
            logger.warning("Signal '%s' failed for %s, scoring 0: %s", signal, domain, exc)
            return 0

    def score_signals(self, baseline: BaselineSnapshot, capture: PageCapture) -> ScoreSet:
        domain = capture.domain
        logger.debug("Scoring %s against baseline %s", domain, baseline.domain)
        return ScoreSet(
            text=self._safe_score("text", domain, lambda: text_similarity(baseline.text, capture.text)),
            keywords=self._safe_score(
                "keywords", domain, lambda: keyword_similarity(baseline.keywords, capture.text)
            ),
            dom=self._safe_score("dom", domain, lambda: dom_similarity(baseline.dom_tree, capture.dom_tree)),
            forms=self._safe_score("forms", domain, lambda: form_similarity(baseline.forms, capture.forms)),
            visual=self._safe_score(
                "visual", domain, lambda: visual_similarity(baseline.screenshot_ref, capture.screenshot_ref)
            ),
        )

    def detect(self, domain: str, baseline: BaselineSnapshot, capture: PageCapture) -> CompositeResult:
        """Run the full pipeline for a reachable capture."""
        if not capture.reachable:
            return CompositeResult.unreachable(domain)

        scores = self.score_signals(baseline, capture)
        composite = composite_score(scores, self.weights)
        verdict = self.false_positive_filter.evaluate(domain, capture.text, scores)
        threat_level = classify_threat(composite, verdict.is_filtered, self.thresholds)

        logger.info(
            "Analysis complete for %s: %s%% similarity (%s)%s",
            domain,
            composite,
            threat_level.value,
            " [filtered]" if verdict.is_filtered else "",
        )
        return CompositeResult(
            domain=domain,
            reachable=True,
            composite_score=composite,
            threat_level=threat_level,
            scores=scores,
            filters=verdict.filters,
            is_filtered=verdict.is_filtered,
            screenshot_ref=Path(capture.screenshot_ref).name if capture.screenshot_ref else None,
        )

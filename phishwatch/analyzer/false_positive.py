"""False-positive suppression rules.

Pages that merely talk about the brand (news, reviews, forum threads,
comparison articles) can score high on text and keyword similarity. The
rules here look at the candidate's content and signal pattern and may
override the verdict to legitimate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol, Sequence

from ..constants import DEFAULT_WHITELIST
from .models import FilterHit, ScoreSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentCategory:
    name: str
    keywords: tuple[str, ...]
    threshold: int


DEFAULT_CONTENT_CATEGORIES: tuple[ContentCategory, ...] = (
    ContentCategory("news", ("article", "published", "author", "news", "reported"), 3),
    ContentCategory("review", ("review", "rating", "customer", "feedback", "opinion"), 3),
    ContentCategory("forum", ("forum", "discussion", "thread", "posted by", "reply"), 3),
    ContentCategory("blog", ("blog", "posted", "comments", "written by"), 2),
)

DEFAULT_CONTEXTUAL_PHRASES: tuple[str, ...] = (
    "about",
    "review of",
    "comparison",
    "vs",
    "versus",
    "what is",
    "how to use",
    "guide to",
    "analysis of",
)

# Hits must exceed this confidence for the override to apply.
OVERRIDE_CONFIDENCE = 70


@dataclass(frozen=True)
class ScorePatternLimits:
    """Brand mentioned in text, no credential form, not a visual clone."""

    max_forms: int = 20
    min_text: int = 60
    max_visual: int = 50
    confidence: float = 75.0


@dataclass(frozen=True)
class FilterContext:
    domain: str
    text: str
    scores: ScoreSet

    @property
    def text_lower(self) -> str:
        return self.text.lower()


@dataclass(frozen=True)
class FilterVerdict:
    is_filtered: bool
    filters: tuple[FilterHit, ...] = field(default_factory=tuple)


class FilterRule(Protocol):
    """Interface for false-positive rules."""

    name: str

    def apply(self, context: FilterContext) -> list[FilterHit]:  # pragma: no cover - interface
        ...


class WhitelistRule:
    name = "whitelist"

    def __init__(self, trusted: Iterable[str]):
        self.trusted = tuple(t.strip().lower() for t in trusted if t and t.strip())

    def apply(self, context: FilterContext) -> list[FilterHit]:
        domain = (context.domain or "").lower()
        for entry in self.trusted:
            if entry in domain:
                return [FilterHit("whitelist", "Domain is whitelisted", 100.0)]
        return []


class ContentTypeRule:
    name = "content_type"

    def __init__(self, categories: Sequence[ContentCategory]):
        self.categories = tuple(categories)

    def apply(self, context: FilterContext) -> list[FilterHit]:
        text = context.text_lower
        hits: list[FilterHit] = []
        for category in self.categories:
            if not category.keywords:
                continue
            matches = sum(1 for keyword in category.keywords if keyword in text)
            if matches >= category.threshold:
                hits.append(
                    FilterHit(
                        "content_type",
                        f"Appears to be a {category.name} site mentioning the brand",
                        matches / len(category.keywords) * 100.0,
                    )
                )
        return hits


class ContextualPhraseRule:
    name = "contextual"

    def __init__(self, phrases: Sequence[str], min_matches: int = 2):
        self.phrases = tuple(p.lower() for p in phrases if p)
        self.min_matches = min_matches

    def apply(self, context: FilterContext) -> list[FilterHit]:
        if not self.phrases:
            return []
        text = context.text_lower
        matches = sum(1 for phrase in self.phrases if phrase in text)
        if matches < self.min_matches:
            return []
        return [
            FilterHit(
                "contextual",
                "Content appears to be informational/editorial",
                matches / len(self.phrases) * 100.0,
            )
        ]


class ScorePatternRule:
    name = "pattern"

    def __init__(self, limits: Optional[ScorePatternLimits] = None):
        self.limits = limits or ScorePatternLimits()

    def apply(self, context: FilterContext) -> list[FilterHit]:
        s, lim = context.scores, self.limits
        if s.forms < lim.max_forms and s.text > lim.min_text and s.visual < lim.max_visual:
            return [
                FilterHit(
                    "pattern",
                    "Text mentions brand but lacks login forms - likely news/review",
                    lim.confidence,
                )
            ]
        return []


class FalsePositiveFilter:
    """Runs the whitelist short-circuit, then every content rule in order."""

    def __init__(
        self,
        whitelist: Optional[Iterable[str]] = None,
        *,
        content_categories: Optional[Sequence[ContentCategory]] = None,
        contextual_phrases: Optional[Sequence[str]] = None,
        min_contextual_matches: int = 2,
        pattern_limits: Optional[ScorePatternLimits] = None,
        override_confidence: float = OVERRIDE_CONFIDENCE,
    ):
        self.whitelist_rule = WhitelistRule(DEFAULT_WHITELIST if whitelist is None else whitelist)
        self.rules: list[FilterRule] = [
            ContentTypeRule(
                DEFAULT_CONTENT_CATEGORIES if content_categories is None else content_categories
            ),
            ContextualPhraseRule(
                DEFAULT_CONTEXTUAL_PHRASES if contextual_phrases is None else contextual_phrases,
                min_matches=min_contextual_matches,
            ),
            ScorePatternRule(pattern_limits),
        ]
        self.override_confidence = override_confidence

    def evaluate(self, domain: str, text: Optional[str], scores: ScoreSet) -> FilterVerdict:
        context = FilterContext(domain=domain or "", text=text or "", scores=scores)

        whitelisted = self.whitelist_rule.apply(context)
        if whitelisted:
            return FilterVerdict(is_filtered=True, filters=tuple(whitelisted))

        hits: list[FilterHit] = []
        for rule in self.rules:
            hits.extend(rule.apply(context))

        is_filtered = bool(hits) and any(hit.confidence > self.override_confidence for hit in hits)
        if hits:
            logger.debug(
                "False-positive rules for %s: %s (filtered=%s)",
                domain,
                ", ".join(f"{h.type}:{h.confidence:.0f}" for h in hits),
                is_filtered,
            )
        return FilterVerdict(is_filtered=is_filtered, filters=tuple(hits))

"""Look-alike domain prediction for the protected brand."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from rapidfuzz import fuzz

from ..utils.domains import domain_label

logger = logging.getLogger(__name__)

PHISHING_KEYWORDS: tuple[str, ...] = (
    "secure",
    "login",
    "verify",
    "account",
    "support",
    "banking",
    "auth",
    "update",
    "confirm",
    "service",
    "portal",
    "access",
    "client",
    "user",
    "help",
    "protect",
    "safety",
)

TLDS: tuple[str, ...] = (".com", ".net", ".org", ".co", ".io", ".online", ".site", ".info")

BRAND_SUFFIXES: tuple[str, ...] = ("digital", "online", "web")

# Suffix joined to typo variants, mirroring the legitimate "<brand>digital" name
TYPO_SUFFIX = "digital"

DIGIT_LOOKALIKES = {"o": "0", "i": "1", "l": "1", "e": "3", "s": "5"}
VOWEL_SWAPS = {"a": "e", "e": "a", "i": "y", "o": "u", "u": "o"}
NEIGHBOUR_KEYS = {"m": "n", "n": "m", "b": "v", "v": "b", "c": "x", "k": "j"}

PATTERN_KEYWORD = "Keyword Injection"
PATTERN_TYPO = "Typosquatting"
PATTERN_BRAND = "Brand Variation"

MAX_PREDICTIONS = 25

_WORD_RE = re.compile(r"^[a-z]{3,}$")


@dataclass(frozen=True)
class PredictedDomain:
    domain: str
    pattern: str
    risk_score: int
    confidence: int

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "pattern": self.pattern,
            "risk_score": self.risk_score,
            "confidence": self.confidence,
        }


def typo_variants(brand: str) -> list[str]:
    """Deterministic single-edit typos of ``brand``, in generation order."""
    brand = brand.lower()
    variants: list[str] = []

    def _add(candidate: str) -> None:
        if candidate and candidate != brand and candidate not in variants:
            variants.append(candidate)

    for i, ch in enumerate(brand):
        if ch in DIGIT_LOOKALIKES:
            _add(brand[:i] + DIGIT_LOOKALIKES[ch] + brand[i + 1 :])
    for i, ch in enumerate(brand):
        if ch in VOWEL_SWAPS:
            _add(brand[:i] + VOWEL_SWAPS[ch] + brand[i + 1 :])
    for i in range(len(brand) - 1):
        _add(brand[:i] + brand[i + 1] + brand[i] + brand[i + 2 :])
    for i, ch in enumerate(brand):
        if ch in NEIGHBOUR_KEYS:
            _add(brand[:i] + NEIGHBOUR_KEYS[ch] + brand[i + 1 :])
    for i in range(len(brand)):
        if len(brand) > 3:
            _add(brand[:i] + brand[i + 1 :])
    return variants


class DomainPredictor:
    """Generates and ranks likely impersonation domains."""

    def __init__(
        self,
        brand: str,
        legitimate_domain: str,
        *,
        keywords: Sequence[str] = PHISHING_KEYWORDS,
        tlds: Sequence[str] = TLDS,
        limit: int = MAX_PREDICTIONS,
    ):
        self.brand = brand.lower().strip()
        self.legitimate_label = domain_label(legitimate_domain) or self.brand
        self.keywords = tuple(k.lower() for k in keywords)
        self.tlds = tuple(tlds)
        self.limit = limit

    def seed_keywords(self, seeds: Iterable[str]) -> list[str]:
        """Extra keywords taken from the labels of observed phishing domains."""
        found: list[str] = []
        for seed in seeds:
            label = domain_label(seed)
            for word in label.split("-"):
                if (
                    _WORD_RE.match(word)
                    and self.brand not in word
                    and word not in self.keywords
                    and word not in found
                ):
                    found.append(word)
        return found

    def _candidates(self, keywords: Sequence[str]) -> dict[str, str]:
        """Map of candidate domain -> pattern label, first generator wins."""
        brand = self.brand
        candidates: dict[str, str] = {}

        for keyword in keywords:
            for tld in self.tlds[:4]:
                for name in (f"{brand}-{keyword}", f"{brand}{keyword}", f"{keyword}-{brand}"):
                    candidates.setdefault(f"{name}{tld}", PATTERN_KEYWORD)

        for suffix in BRAND_SUFFIXES:
            for tld in self.tlds[:3]:
                for name in (f"{brand}-{suffix}", f"{brand}{suffix}"):
                    candidates.setdefault(f"{name}{tld}", PATTERN_BRAND)

        for typo in typo_variants(brand):
            for tld in self.tlds[:2]:
                candidates.setdefault(f"{typo}{TYPO_SUFFIX}{tld}", PATTERN_TYPO)

        return candidates

    def _risk(self, domain: str) -> tuple[int, int]:
        label = domain_label(domain)
        similarity = fuzz.ratio(label, self.legitimate_label)
        brand_overlap = fuzz.partial_ratio(self.brand, label)
        risk = 70 + int(round(similarity * 0.29))
        confidence = 80 + int(round(brand_overlap * 0.19))
        return min(risk, 99), min(confidence, 99)

    def predict(self, seeds: Iterable[str], limit: Optional[int] = None) -> list[PredictedDomain]:
        """Rank look-alike domains; no seeds means no predictions."""
        seed_list = [s.strip() for s in seeds if s and s.strip()]
        if not seed_list:
            return []

        keywords = list(self.keywords) + self.seed_keywords(seed_list)
        predictions = []
        for domain, pattern in self._candidates(keywords).items():
            if domain_label(domain) == self.legitimate_label:
                continue
            risk, confidence = self._risk(domain)
            predictions.append(PredictedDomain(domain, pattern, risk, confidence))

        predictions.sort(key=lambda p: (-p.risk_score, -p.confidence, p.domain))
        result = predictions[: limit or self.limit]
        logger.info("Predicted %s look-alike domains from %s seeds", len(result), len(seed_list))
        return result

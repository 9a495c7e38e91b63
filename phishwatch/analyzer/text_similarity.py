"""Text (TF-IDF cosine) and brand keyword signals."""

from __future__ import annotations

from typing import Iterable, Optional

from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

TOKEN_PATTERN = r"[a-z0-9]+"


def text_similarity(baseline_text: Optional[str], candidate_text: Optional[str]) -> float:
    """Cosine similarity of the two texts' TF-IDF vectors, scaled to [0, 100].

    The two texts are the whole corpus the vectorizer is fitted on.
    """
    if not (baseline_text or "").strip() or not (candidate_text or "").strip():
        return 0.0
    vectorizer = TfidfVectorizer(lowercase=True, token_pattern=TOKEN_PATTERN)
    try:
        matrix = vectorizer.fit_transform([baseline_text, candidate_text])
    except ValueError:
        # Empty vocabulary: neither text has a single token
        return 0.0
    score = float(cosine_similarity(matrix[0], matrix[1])[0][0])
    return min(100.0, max(0.0, score * 100.0))


def keyword_similarity(baseline_keywords: Iterable[str], candidate_text: Optional[str]) -> float:
    """Percentage of baseline brand keywords found verbatim in the candidate text."""
    keywords = [k.lower() for k in baseline_keywords or () if k and k.strip()]
    if not keywords or not candidate_text:
        return 0.0
    haystack = candidate_text.lower()
    matched = sum(1 for keyword in keywords if keyword in haystack)
    return matched / len(keywords) * 100.0

"""Structural DOM similarity."""

from __future__ import annotations

from typing import Iterable, Optional

from ..constants import DOM_DEPTH_CAP_SCORE, DOM_MAX_CHILDREN, DOM_MAX_DEPTH
from .models import DomNode


def class_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    """Jaccard index of two class sets; an empty union scores 0."""
    left, right = set(a), set(b)
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def compare_dom_trees(
    a: Optional[DomNode],
    b: Optional[DomNode],
    depth: int = 0,
    *,
    max_depth: int = DOM_MAX_DEPTH,
    depth_cap_score: float = DOM_DEPTH_CAP_SCORE,
) -> float:
    """Score two trees in [0, 1].

    Each node pair averages its evaluated components: tag equality, class
    Jaccard (only when either side carries classes) and one recursive term
    per positionally aligned child pair. Pairs below ``max_depth`` are not
    inspected and count as ``depth_cap_score``.
    """
    if a is None or b is None:
        return 0.0
    if depth > max_depth:
        return depth_cap_score

    score = 1.0 if a.tag == b.tag else 0.0
    components = 1

    if a.classes or b.classes:
        score += class_similarity(a.classes, b.classes)
        components += 1

    for left, right in zip(a.children[:DOM_MAX_CHILDREN], b.children[:DOM_MAX_CHILDREN]):
        score += compare_dom_trees(
            left,
            right,
            depth + 1,
            max_depth=max_depth,
            depth_cap_score=depth_cap_score,
        )
        components += 1

    return score / components


def dom_similarity(baseline_tree: Optional[DomNode], candidate_tree: Optional[DomNode]) -> float:
    """Root comparison score scaled to [0, 100]."""
    if baseline_tree is None or candidate_tree is None:
        return 0.0
    if baseline_tree.is_empty or candidate_tree.is_empty:
        return 0.0
    return min(100.0, max(0.0, compare_dom_trees(baseline_tree, candidate_tree) * 100.0))

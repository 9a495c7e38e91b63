"""Form field similarity."""

from __future__ import annotations

from typing import Sequence

from .models import FormDescriptor, FormField


def fields_match(baseline: FormField, candidate: FormField) -> bool:
    if baseline.type != candidate.type:
        return False
    return (
        baseline.name == candidate.name
        or baseline.id == candidate.id
        or baseline.placeholder == candidate.placeholder
    )


def compare_form_fields(baseline_fields: Sequence[FormField], candidate_fields: Sequence[FormField]) -> float:
    """Fraction of baseline fields with a matching candidate field, over the larger form."""
    total = max(len(baseline_fields), len(candidate_fields))
    if total == 0:
        return 0.0
    matched = sum(
        1 for field in baseline_fields if any(fields_match(field, other) for other in candidate_fields)
    )
    return matched / total


def form_similarity(
    baseline_forms: Sequence[FormDescriptor],
    candidate_forms: Sequence[FormDescriptor],
) -> float:
    """Best field-match ratio over every baseline/candidate form pair, scaled to [0, 100].

    A clone only needs one convincing credential form, so the best pair wins.
    """
    if not baseline_forms or not candidate_forms:
        return 0.0
    best = 0.0
    for baseline_form in baseline_forms:
        for candidate_form in candidate_forms:
            best = max(best, compare_form_fields(baseline_form.fields, candidate_form.fields))
    return min(100.0, best * 100.0)

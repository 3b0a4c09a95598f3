"""
Editing and submission rules for the rubric form.

The browser keeps the form state; these helpers are the single definition
of how levels and criteria are added, removed and re-weighted, and of when
a form is complete enough to be sent to the model.
"""

from __future__ import annotations

from typing import List, Sequence

from .errors import FormValidationError
from .form_models import FormContext, SuggestionContext, WeightedCriterion

REQUIRED_TOTAL_WEIGHT = 100


def _contains(items: Sequence[str], value: str) -> bool:
    lowered = value.lower()
    return any(existing.lower() == lowered for existing in items)


def add_unique(items: Sequence[str], value: str) -> List[str]:
    """Append ``value`` unless it is blank or a case-insensitive duplicate."""
    value = (value or "").strip()
    if not value or _contains(items, value):
        return list(items)
    return [*items, value]


def remove_item(items: Sequence[str], value: str) -> List[str]:
    return [item for item in items if item != value]


def add_weighted_criterion(
    criteria: Sequence[WeightedCriterion], name: str, weight
) -> List[WeightedCriterion]:
    """Append a weighted criterion; invalid weights and duplicate names are ignored."""
    name = (name or "").strip()
    try:
        weight = int(weight)
    except (TypeError, ValueError):
        return list(criteria)
    if not name or weight < 0:
        return list(criteria)
    if _contains([c.name for c in criteria], name):
        return list(criteria)
    return [*criteria, WeightedCriterion(name=name, weight=weight)]


def remove_weighted_criterion(
    criteria: Sequence[WeightedCriterion], name: str
) -> List[WeightedCriterion]:
    return [c for c in criteria if c.name != name]


def set_weight(
    criteria: Sequence[WeightedCriterion], name: str, weight
) -> List[WeightedCriterion]:
    """Change one weight; anything that does not parse as an int becomes 0."""
    try:
        new_weight = int(weight)
    except (TypeError, ValueError):
        new_weight = 0
    return [
        WeightedCriterion(name=c.name, weight=new_weight) if c.name == name else c
        for c in criteria
    ]


def total_weight(criteria: Sequence[WeightedCriterion]) -> int:
    return sum(c.weight or 0 for c in criteria)


def validate_suggestion_context(ctx: SuggestionContext) -> None:
    if not (ctx.stage and ctx.course and ctx.subject and ctx.evaluation_element.strip()):
        raise FormValidationError(
            "stage, course, subject and evaluation element are required",
            message_key="error_incomplete_context",
        )


def validate_form_context(ctx: FormContext) -> None:
    """Raise FormValidationError unless ``ctx`` can be submitted for generation."""
    validate_suggestion_context(ctx.suggestion_context)

    levels = [level.strip() for level in ctx.performance_levels]
    if not levels or any(not level for level in levels):
        raise FormValidationError(
            "at least one named performance level is required",
            message_key="error_missing_levels",
        )
    if len({level.lower() for level in levels}) != len(levels):
        raise FormValidationError(
            "performance levels must be unique", message_key="error_duplicate_levels"
        )

    if not any(c.strip() for c in ctx.specific_criteria):
        raise FormValidationError(
            "at least one curricular criterion is required",
            message_key="error_missing_specific_criteria",
        )

    criteria = ctx.evaluation_criteria
    if not criteria:
        raise FormValidationError(
            "at least one weighted criterion is required",
            message_key="error_missing_evaluation_criteria",
        )
    names = [c.name.strip().lower() for c in criteria]
    if any(not n for n in names) or len(set(names)) != len(names):
        raise FormValidationError(
            "weighted criteria need unique, non-empty names",
            message_key="error_duplicate_criteria",
        )
    if any(c.weight < 0 for c in criteria):
        raise FormValidationError(
            "weights cannot be negative", message_key="weighting_must_be_100"
        )

    total = total_weight(criteria)
    if total != REQUIRED_TOTAL_WEIGHT:
        raise FormValidationError(
            f"weights sum to {total}, expected {REQUIRED_TOTAL_WEIGHT}",
            message_key="weighting_must_be_100",
        )

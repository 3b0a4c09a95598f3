"""
Validation and normalization of model output.

The model is an untrusted collaborator: its JSON is parsed tolerantly,
checked structurally, reconciled against what was requested, and its
numeric weights are replaced by the ones the user configured.

Name matching policy: item names are compared after trimming whitespace
and ignoring case, the same rule the form uses to reject duplicates.
"""

from __future__ import annotations

import json
import logging
import math
import re
from numbers import Number
from typing import Any, Dict, List, Sequence, Union

from .errors import (
    InvalidSuggestionResponseError,
    ParseError,
    SchemaError,
    ValidationWarning,
)
from .form_models import FormContext, SuggestionKind, WeightedCriterion
from .rubric import Descriptor, Rubric, RubricItem, ScaleHeader

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```[\w+-]*[ \t]*\n?(?P<body>.*?)\s*```$", re.DOTALL)


def _key(name: str) -> str:
    return (name or "").strip().lower()


# ----------------- Tolerant parsing -----------------

def strip_code_fences(text: str) -> str:
    """Remove a BOM and one surrounding markdown code fence, if present."""
    text = (text or "").strip().lstrip("\ufeff").strip()
    match = _FENCE_RE.match(text)
    if match:
        text = match.group("body").strip()
    return text


def parse_json(text: str) -> Any:
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise ParseError("empty response")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParseError(f"response is not JSON: {e}") from e


# ----------------- Shape checks -----------------

def _require_str(obj: Dict[str, Any], field: str, where: str, *, non_empty: bool = False) -> str:
    value = obj.get(field)
    if not isinstance(value, str):
        raise SchemaError(f"{where}.{field} must be a string")
    if non_empty and not value.strip():
        raise SchemaError(f"{where}.{field} must not be empty")
    return value


def _require_list(obj: Dict[str, Any], field: str, where: str) -> List[Any]:
    value = obj.get(field)
    if not isinstance(value, list):
        raise SchemaError(f"{where}.{field} must be an array")
    return value


def _require_obj(value: Any, where: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(f"{where} must be an object")
    return value


def _score(obj: Dict[str, Any], where: str, *, required: bool) -> str:
    value = obj.get("score")
    if value is None and not required:
        return ""
    if isinstance(value, Number) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str):
        raise SchemaError(f"{where}.score must be a string")
    return value.strip()


def _parse_headers(data: Dict[str, Any]) -> List[ScaleHeader]:
    headers = []
    for i, raw in enumerate(_require_list(data, "scaleHeaders", "rubric")):
        where = f"scaleHeaders[{i}]"
        raw = _require_obj(raw, where)
        headers.append(
            ScaleHeader(
                level=_require_str(raw, "level", where, non_empty=True).strip(),
                score=_score(raw, where, required=True),
            )
        )
    return headers


def _parse_descriptors(raw_item: Dict[str, Any], where: str) -> List[Descriptor]:
    descriptors = []
    for j, raw in enumerate(_require_list(raw_item, "descriptors", where)):
        d_where = f"{where}.descriptors[{j}]"
        raw = _require_obj(raw, d_where)
        descriptors.append(
            Descriptor(
                level=_require_str(raw, "level", d_where).strip(),
                description=_require_str(raw, "description", d_where).strip(),
                score=_score(raw, d_where, required=False),
            )
        )
    return descriptors


# ----------------- Reconciliation -----------------

class _Reconciler:
    """Collects mismatches; raises on the first one in strict mode."""

    def __init__(self, strict: bool):
        self.strict = strict
        self.warnings: List[ValidationWarning] = []

    def flag(self, code: str, detail: str) -> None:
        if self.strict:
            raise SchemaError(f"{code}: {detail}")
        logger.warning(f"AI response mismatch ({code}): {detail}")
        self.warnings.append(ValidationWarning(code=code, detail=detail))


def _order_by_levels(entries: Sequence, levels: Sequence[str]) -> List:
    """Reorder entries (anything with ``.level``) to follow ``levels``.

    Only applied when both sides hold exactly the same level set.
    """
    by_level = {_key(e.level): e for e in entries}
    if len(by_level) != len(entries) or set(by_level) != {_key(level) for level in levels}:
        return list(entries)
    return [by_level[_key(level)] for level in levels]


def _reconcile_headers(
    headers: List[ScaleHeader], ctx: FormContext, rec: _Reconciler
) -> List[ScaleHeader]:
    requested = [level.strip() for level in ctx.performance_levels]
    returned = [h.level for h in headers]
    if {_key(level) for level in returned} != {_key(level) for level in requested} or len(
        returned
    ) != len(requested):
        rec.flag(
            "scale_levels_mismatch",
            f"requested levels {requested}, got {returned}",
        )
        return headers
    ordered = _order_by_levels(headers, requested)
    # Requested spelling wins over the model's
    return [ScaleHeader(level=level, score=h.score) for level, h in zip(requested, ordered)]


def _reconcile_descriptors(
    item_name: str,
    descriptors: List[Descriptor],
    headers: List[ScaleHeader],
    rec: _Reconciler,
) -> List[Descriptor]:
    header_levels = [h.level for h in headers]
    if len(descriptors) != len(headers):
        rec.flag(
            "descriptor_count_mismatch",
            f"'{item_name}' has {len(descriptors)} descriptors for {len(headers)} levels",
        )
        return descriptors
    if {_key(d.level) for d in descriptors} != {_key(level) for level in header_levels}:
        rec.flag(
            "descriptor_levels_mismatch",
            f"'{item_name}' descriptor levels {[d.level for d in descriptors]} "
            f"do not match {header_levels}",
        )
        return descriptors
    ordered = _order_by_levels(descriptors, header_levels)
    return [
        Descriptor(level=h.level, description=d.description, score=d.score or h.score)
        for h, d in zip(headers, ordered)
    ]


def _reconcile_items(
    raw_items: List[Any],
    headers: List[ScaleHeader],
    ctx: FormContext,
    rec: _Reconciler,
) -> List[RubricItem]:
    weights = {_key(c.name): c.weight for c in ctx.evaluation_criteria}
    names = {_key(c.name): c.name for c in ctx.evaluation_criteria}

    items: List[RubricItem] = []
    seen = set()
    for i, raw in enumerate(raw_items):
        where = f"items[{i}]"
        raw = _require_obj(raw, where)
        item_name = _require_str(raw, "itemName", where, non_empty=True).strip()
        descriptors = _parse_descriptors(raw, where)

        key = _key(item_name)
        if key not in weights:
            rec.flag("unknown_item", f"'{item_name}' was not requested; weight set to 0")
        elif key in seen:
            rec.flag("duplicate_item", f"'{item_name}' appears more than once; later copy dropped")
            continue
        seen.add(key)

        items.append(
            RubricItem(
                item_name=names.get(key, item_name),
                # The model's own weight field is never used
                weight=weights.get(key, 0),
                descriptors=tuple(_reconcile_descriptors(item_name, descriptors, headers, rec)),
            )
        )

    missing = [c.name for c in ctx.evaluation_criteria if _key(c.name) not in seen]
    if missing:
        rec.flag("missing_items", f"no rubric item for {missing}")

    # Requested order, unknown items last
    order = {_key(c.name): i for i, c in enumerate(ctx.evaluation_criteria)}
    return sorted(items, key=lambda item: order.get(_key(item.item_name), len(order)))


# ----------------- Public entry points -----------------

def validate_rubric_response(raw_text: str, ctx: FormContext, *, strict: bool = True) -> Rubric:
    """Turn raw model text into a Rubric or raise ParseError / SchemaError.

    In strict mode any mismatch between the request and the response
    (items, levels, descriptor counts) is a SchemaError. Otherwise the
    mismatches are logged and attached to ``Rubric.warnings``.
    """
    data = _require_obj(parse_json(raw_text), "rubric")

    title = _require_str(data, "title", "rubric", non_empty=True).strip()
    raw_items = _require_list(data, "items", "rubric")
    headers = _parse_headers(data)

    rec = _Reconciler(strict)
    headers = _reconcile_headers(headers, ctx, rec)
    items = _reconcile_items(raw_items, headers, ctx, rec)

    return Rubric(
        title=title,
        scale_headers=tuple(headers),
        items=tuple(items),
        # Authoritative copy from the form; any echo from the model is dropped
        specific_criteria=tuple(ctx.specific_criteria),
        warnings=tuple(rec.warnings),
    )


def validate_suggestion_response(
    raw_text: str, kind: SuggestionKind
) -> Union[List[str], List[WeightedCriterion]]:
    kind = SuggestionKind(kind)
    try:
        data = parse_json(raw_text)
    except ParseError as e:
        raise InvalidSuggestionResponseError(str(e)) from e

    if not isinstance(data, list):
        raise InvalidSuggestionResponseError("suggestions must be an array")

    if kind is SuggestionKind.SPECIFIC:
        if not all(isinstance(s, str) for s in data):
            raise InvalidSuggestionResponseError("every suggestion must be a string")
        return [s.strip() for s in data if s.strip()]

    result = []
    for entry in data:
        if not (
            isinstance(entry, dict)
            and isinstance(entry.get("name"), str)
            and isinstance(entry.get("weight"), Number)
            and not isinstance(entry.get("weight"), bool)
        ):
            raise InvalidSuggestionResponseError(
                "every weighted suggestion needs a string name and a numeric weight"
            )
        if isinstance(entry["weight"], float) and not math.isfinite(entry["weight"]):
            raise InvalidSuggestionResponseError(f"weight of '{entry['name']}' is not finite")
        result.append((entry["name"].strip(), entry["weight"]))
    return [WeightedCriterion(name=name, weight=weight) for name, weight in result if name]


def normalize_weights(
    criteria: Sequence[WeightedCriterion], total: int = 100
) -> List[WeightedCriterion]:
    """Scale weights to integers summing to ``total``.

    Proportional scaling rounded down, with the remainder added to the
    first criterion. All-zero (or negative) input is split evenly.
    Alternative policy for untrusted weights; generated rubrics always use
    the user's weights instead.
    """
    if not criteria:
        return []
    raw = [max(float(c.weight or 0), 0.0) for c in criteria]
    current = sum(raw)
    if current <= 0:
        raw = [1.0] * len(criteria)
        current = float(len(criteria))
    scaled = [int(w * total // current) for w in raw]
    scaled[0] += total - sum(scaled)
    return [WeightedCriterion(name=c.name, weight=w) for c, w in zip(criteria, scaled)]

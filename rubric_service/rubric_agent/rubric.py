# rubric.py

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .errors import SchemaError, ValidationWarning
from .form_models import FormContext


# Canonical five-level scale, low -> high. Aliases cover the es/en/fr UI.
CANONICAL_SCALE: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("insuficiente", "insufficient", "insuffisant"), "0-4"),
    (("suficiente", "sufficient", "suffisant"), "5"),
    (("bien", "good"), "6"),
    (("notable", "outstanding", "très bien", "tres bien"), "7-8"),
    (("sobresaliente", "excellent"), "9-10"),
)


def canonical_score(level: str) -> Optional[str]:
    """Score for a canonical level name, or None for custom levels."""
    key = (level or "").strip().lower()
    for aliases, score in CANONICAL_SCALE:
        if key in aliases:
            return score
    return None


@dataclass(frozen=True)
class ScaleHeader:
    level: str
    score: str

    def to_dict(self) -> Dict[str, str]:
        return {"level": self.level, "score": self.score}


@dataclass(frozen=True)
class Descriptor:
    level: str
    description: str
    score: str

    def to_dict(self) -> Dict[str, str]:
        return {"level": self.level, "description": self.description, "score": self.score}


@dataclass(frozen=True)
class RubricItem:
    item_name: str
    weight: int
    descriptors: Tuple[Descriptor, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "itemName": self.item_name,
            "weight": self.weight,
            "descriptors": [d.to_dict() for d in self.descriptors],
        }


@dataclass(frozen=True)
class Rubric:
    title: str
    scale_headers: Tuple[ScaleHeader, ...]
    items: Tuple[RubricItem, ...]
    specific_criteria: Tuple[str, ...] = ()
    warnings: Tuple[ValidationWarning, ...] = field(default_factory=tuple)

    @property
    def total_weight(self) -> int:
        return sum(item.weight for item in self.items)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "title": self.title,
            "scaleHeaders": [h.to_dict() for h in self.scale_headers],
            "items": [i.to_dict() for i in self.items],
            "specificCriteria": list(self.specific_criteria),
        }
        if self.warnings:
            data["warnings"] = [w.to_dict() for w in self.warnings]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rubric":
        """Rebuild a rubric the browser sends back (edited or loaded).

        Shape problems raise SchemaError. No weight reconciliation happens
        here: edited rubrics keep whatever weights the user saved.
        """
        if not isinstance(data, dict):
            raise SchemaError("rubric must be an object")
        try:
            return cls(
                title=str(data["title"]),
                scale_headers=tuple(
                    ScaleHeader(level=str(h["level"]), score=str(h["score"]))
                    for h in data["scaleHeaders"]
                ),
                items=tuple(
                    RubricItem(
                        item_name=str(i["itemName"]),
                        weight=int(i.get("weight") or 0),
                        descriptors=tuple(
                            Descriptor(
                                level=str(d["level"]),
                                description=str(d["description"]),
                                score=str(d["score"]),
                            )
                            for d in i["descriptors"]
                        ),
                    )
                    for i in data["items"]
                ),
                specific_criteria=tuple(str(c) for c in data.get("specificCriteria") or ()),
                warnings=tuple(
                    ValidationWarning(code=str(w["code"]), detail=str(w["detail"]))
                    for w in data.get("warnings") or ()
                ),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SchemaError(f"malformed rubric: {e}") from e


@dataclass(frozen=True)
class SavedRubric:
    """One entry of a user's saved-rubric list."""
    id: str
    rubric: Rubric
    form_data: FormContext
    created_at: str
    title: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rubric": self.rubric.to_dict(),
            "formData": self.form_data.to_dict(),
            "createdAt": self.created_at,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavedRubric":
        rubric = Rubric.from_dict(data["rubric"])
        return cls(
            id=str(data["id"]),
            rubric=rubric,
            form_data=FormContext.from_dict(data.get("formData") or {}),
            created_at=str(data.get("createdAt") or ""),
            title=str(data.get("title") or rubric.title),
        )

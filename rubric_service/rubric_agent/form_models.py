# form_models.py

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Tuple


DEFAULT_PERFORMANCE_LEVELS: Tuple[str, ...] = (
    "Insuficiente",
    "Suficiente",
    "Bien",
    "Notable",
    "Sobresaliente",
)


def _list_field(data: Dict[str, Any], field_name: str, default: Any = ()) -> Any:
    value = data.get(field_name)
    if value is None:
        return default
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"{field_name} must be a list, got {type(value).__name__}")
    return value


class SuggestionKind(str, Enum):
    """Which list the model is asked to suggest."""
    SPECIFIC = "specific"
    EVALUATION = "evaluation"


@dataclass(frozen=True)
class WeightedCriterion:
    name: str
    weight: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "weight": self.weight}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeightedCriterion":
        return cls(name=str(data.get("name", "")), weight=int(data.get("weight") or 0))


@dataclass(frozen=True)
class SuggestionContext:
    """The part of the form the suggestion requests need."""
    stage: str
    course: str
    subject: str
    evaluation_element: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SuggestionContext":
        return cls(
            stage=str(data.get("stage") or "").strip(),
            course=str(data.get("course") or "").strip(),
            subject=str(data.get("subject") or "").strip(),
            evaluation_element=str(data.get("evaluationElement") or "").strip(),
        )


@dataclass(frozen=True)
class FormContext:
    stage: str
    course: str
    subject: str
    evaluation_element: str

    # Ordered low -> high achievement
    performance_levels: Tuple[str, ...] = DEFAULT_PERFORMANCE_LEVELS

    # Official curricular criteria, display order preserved
    specific_criteria: Tuple[str, ...] = ()

    # One rubric item per entry
    evaluation_criteria: Tuple[WeightedCriterion, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # JSON gives us lists and dicts; frozen=True requires object.__setattr__
        object.__setattr__(self, "performance_levels", tuple(self.performance_levels))
        object.__setattr__(self, "specific_criteria", tuple(self.specific_criteria))
        object.__setattr__(
            self,
            "evaluation_criteria",
            tuple(
                c if isinstance(c, WeightedCriterion) else WeightedCriterion.from_dict(c)
                for c in self.evaluation_criteria
            ),
        )

    @property
    def suggestion_context(self) -> SuggestionContext:
        return SuggestionContext(
            stage=self.stage,
            course=self.course,
            subject=self.subject,
            evaluation_element=self.evaluation_element,
        )

    @property
    def item_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.evaluation_criteria)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "course": self.course,
            "subject": self.subject,
            "evaluationElement": self.evaluation_element,
            "performanceLevels": list(self.performance_levels),
            "specificCriteria": list(self.specific_criteria),
            "evaluationCriteria": [c.to_dict() for c in self.evaluation_criteria],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormContext":
        levels = _list_field(data, "performanceLevels", DEFAULT_PERFORMANCE_LEVELS)
        return cls(
            stage=str(data.get("stage") or "").strip(),
            course=str(data.get("course") or "").strip(),
            subject=str(data.get("subject") or "").strip(),
            evaluation_element=str(data.get("evaluationElement") or "").strip(),
            performance_levels=tuple(
                str(level) for level in levels
            ),
            specific_criteria=tuple(str(c) for c in _list_field(data, "specificCriteria")),
            evaluation_criteria=tuple(
                WeightedCriterion.from_dict(c) for c in _list_field(data, "evaluationCriteria")
            ),
        )

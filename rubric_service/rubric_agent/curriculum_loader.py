# curriculum_loader.py

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

CURRICULUM_DIR = Path(__file__).parent / "curriculum"

REQUIRED_FIELDS = {"stage", "subject", "courses", "criteria"}


@dataclass(frozen=True)
class CurriculumCriterion:
    code: str
    description: str

    @property
    def label(self) -> str:
        return f"{self.code}. {self.description}"


@dataclass(frozen=True)
class CurriculumEntry:
    stage: str
    subject: str
    courses: Tuple[str, ...]
    criteria: Tuple[CurriculumCriterion, ...]

    def matches(self, stage: str, subject: str, course: str) -> bool:
        return (
            _norm(self.stage) == _norm(stage)
            and _norm(self.subject) == _norm(subject)
            and _norm(course) in {_norm(c) for c in self.courses}
        )


def _norm(value: str) -> str:
    return " ".join((value or "").split()).lower()


def _load_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Curriculum file not found: {path}")
    if path.suffix.lower() == ".json":
        return json.loads(path.read_text(encoding="utf-8"))
    if path.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    raise ValueError(f"Unsupported curriculum file extension: {path.suffix}")


def load_curriculum_file(path: str | Path) -> CurriculumEntry:
    path = Path(path)
    raw = _load_raw(path)
    if not isinstance(raw, dict):
        raise ValueError(f"{path.name} must contain a mapping")
    missing = REQUIRED_FIELDS - set(raw)
    if missing:
        raise ValueError(f"{path.name} missing fields: {sorted(missing)}")
    return CurriculumEntry(
        stage=str(raw["stage"]),
        subject=str(raw["subject"]),
        courses=tuple(str(c) for c in raw["courses"]),
        criteria=tuple(
            CurriculumCriterion(code=str(c["code"]), description=str(c["description"]).strip())
            for c in raw["criteria"]
        ),
    )


def load_all(directory: Path = CURRICULUM_DIR) -> List[CurriculumEntry]:
    entries = []
    for path in sorted(directory.glob("*")):
        if path.suffix.lower() in {".json", ".yaml", ".yml"}:
            entries.append(load_curriculum_file(path))
    return entries


def find_curriculum(
    stage: str, subject: str, course: str, directory: Path = CURRICULUM_DIR
) -> Optional[Tuple[CurriculumCriterion, ...]]:
    """Official criteria for a stage/subject/course, or None when we have no data."""
    for entry in load_all(directory):
        if entry.matches(stage, subject, course):
            return entry.criteria
    logger.debug(f"No curriculum data for {stage} / {subject} / {course}")
    return None

"""
Prompt construction for rubric generation, criteria suggestions and chat.

Every builder is a pure function of its inputs and returns a
GenerationRequest: the rendered instruction text, the JSON Schema the
answer must follow (None for free text) and the sampling temperature.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from langchain_core.prompts import PromptTemplate

from .curriculum_loader import CurriculumCriterion
from .form_models import FormContext, SuggestionContext, SuggestionKind
from .rubric import CANONICAL_SCALE, Rubric, canonical_score

LANGUAGE_NAMES = {
    "es": "español",
    "en": "inglés",
    "fr": "francés",
}


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    schema: Optional[Dict[str, Any]]
    temperature: float


# ----------------- Output schemas -----------------

RUBRIC_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "scaleHeaders": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "level": {"type": "string"},
                    "score": {"type": "string"},
                },
                "required": ["level", "score"],
            },
        },
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "itemName": {"type": "string"},
                    "descriptors": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "level": {"type": "string"},
                                "description": {"type": "string"},
                                "score": {"type": "string"},
                            },
                            "required": ["level", "description", "score"],
                        },
                    },
                },
                "required": ["itemName", "descriptors"],
            },
        },
    },
    "required": ["title", "scaleHeaders", "items"],
}

SPECIFIC_SUGGESTION_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": {"type": "string"},
}

EVALUATION_SUGGESTION_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "weight": {"type": "number"},
        },
        "required": ["name", "weight"],
    },
}


# ----------------- Templates -----------------

RUBRIC_TEMPLATE = """Eres un experto en pedagogía y diseño curricular. Tu tarea es crear una rúbrica de evaluación detallada, coherente y con puntuaciones.

**Contexto de la Evaluación:**
- **Elemento a evaluar:** {evaluation_element}
- **Etapa Educativa:** {stage}
- **Curso:** {course}
- **Asignatura:** {subject}
- **Criterios de Evaluación (Currículo LOMLOE):**
{specific_criteria}
- **Aspectos Específicos a Evaluar (serán los ítems de la rúbrica):** {item_names}

**Instrucciones para la Rúbrica:**
1. El título debe ser conciso y reflejar que se evalúa "{evaluation_element}" en la asignatura de "{subject}".
2. Los ítems ('itemName') deben ser **exactamente** los "Aspectos Específicos a Evaluar", en el mismo orden y con el mismo texto. Total: **{item_count}** ítems, ni más ni menos.
3. Usa estos niveles, de menor a mayor logro y con sus nombres exactos: **{levels}**. Total: **{level_count}** niveles.
   'scaleHeaders' debe contener un elemento por nivel en ese orden, y cada ítem debe tener un descriptor por nivel en ese mismo orden.
4. Escala de puntuación estándar:
{canonical_scale}
   Puntuaciones para los niveles solicitados:
{level_scores}
   Si hay niveles personalizados, asígnales una puntuación coherente con el orden ascendente.
5. Los encabezados de la escala incluyen el nivel y su puntuación; cada descriptor repite el nivel y la puntuación de su columna.
6. Las descripciones por nivel deben ser claras, observables y progresivas, basadas en los criterios de evaluación indicados.
7. Redacta el título y las descripciones en {language_name}, pero conserva sin traducir los nombres de niveles e ítems.

Devuelve **solo** JSON en el formato del schema."""

SPECIFIC_SUGGESTION_TEMPLATE = """Contexto:
- Etapa: {stage}
- Asignatura: {subject}
- Curso: {course}
- Elemento a evaluar: {evaluation_element}

Tarea:
Genera una lista de 4 o 5 **Criterios de Evaluación del currículo oficial LOMLOE de la Región de Murcia** relevantes para evaluar "{evaluation_element}". **Incluye la numeración oficial** (ej: 1.1, 2.3...).
Por ejemplo: "1.1. Comprender e interpretar el sentido global...", "3.2. Producir textos escritos y multimodales..."
{closed_list}
Redacta los criterios en {language_name}.

Devuelve **solo** un array JSON de strings."""

CLOSED_LIST_TEMPLATE = """
Elige **únicamente** entre los siguientes criterios oficiales, copiando su numeración y su texto sin modificarlos:
{criteria}
"""

EVALUATION_SUGGESTION_TEMPLATE = """Contexto:
- Etapa: {stage}
- Asignatura: {subject}
- Curso: {course}
- Elemento a evaluar: {evaluation_element}

Tarea:
Genera 4 o 5 **aspectos observables o destrezas evaluables con una ponderación sugerida** para este contexto. **Asigna "weight" (número entero)** y haz que la suma sea **exactamente 100**.
Ej.: [{{ "name": "Expresar opiniones de forma argumentada", "weight": 40 }}, {{ "name": "Respetar el turno de palabra", "weight": 30 }}, {{ "name": "Uso de vocabulario específico", "weight": 30 }}]
Redacta los nombres en {language_name}.

Devuelve **solo** un array JSON de objetos {{ "name": string, "weight": number }}."""

CHAT_TEMPLATE = """Eres un asistente experto en evaluación educativa y en el currículo LOMLOE. Ayudas a docentes a diseñar, revisar y mejorar rúbricas de evaluación. Responde de forma breve y práctica, en {language_name}.
{rubric_context}
Pregunta del docente:
{message}"""


def _render(template: str, **values: Any) -> str:
    return PromptTemplate.from_template(template).format(**values)


def _language_name(language: str) -> str:
    return LANGUAGE_NAMES.get((language or "es").lower()[:2], LANGUAGE_NAMES["es"])


def _bullet_lines(lines: Sequence[str], indent: str = "  ") -> str:
    return "\n".join(f"{indent}- {line}" for line in lines)


def _canonical_scale_text() -> str:
    return "\n".join(
        f'   - {aliases[0].capitalize()}: "{score}"' for aliases, score in CANONICAL_SCALE
    )


def _level_scores_text(levels: Sequence[str]) -> str:
    lines = []
    for level in levels:
        score = canonical_score(level)
        if score is None:
            lines.append(f'   - {level}: (nivel personalizado, asigna una puntuación coherente)')
        else:
            lines.append(f'   - {level}: "{score}"')
    return "\n".join(lines)


# ----------------- Builders -----------------

def build_rubric_request(
    ctx: FormContext, *, language: str = "es", temperature: float = 0.8
) -> GenerationRequest:
    """Instruction + schema for a full rubric.

    The caller has already checked the form (weights sum to 100, at least
    one criterion of each kind).
    """
    item_names = ctx.item_names
    prompt = _render(
        RUBRIC_TEMPLATE,
        evaluation_element=ctx.evaluation_element,
        stage=ctx.stage,
        course=ctx.course,
        subject=ctx.subject,
        specific_criteria=_bullet_lines(ctx.specific_criteria, indent="    "),
        item_names="; ".join(item_names),
        item_count=len(item_names),
        levels=", ".join(ctx.performance_levels),
        level_count=len(ctx.performance_levels),
        canonical_scale=_canonical_scale_text(),
        level_scores=_level_scores_text(ctx.performance_levels),
        language_name=_language_name(language),
    )
    return GenerationRequest(prompt=prompt, schema=RUBRIC_SCHEMA, temperature=temperature)


def build_suggestion_request(
    ctx: SuggestionContext,
    kind: SuggestionKind,
    *,
    curriculum: Optional[Sequence[CurriculumCriterion]] = None,
    language: str = "es",
    temperature: float = 0.7,
) -> GenerationRequest:
    """Instruction + schema for criteria suggestions.

    ``curriculum`` (specific mode only) turns free generation into a
    selection from the official list.
    """
    kind = SuggestionKind(kind)
    values = {
        "stage": ctx.stage,
        "course": ctx.course,
        "subject": ctx.subject,
        "evaluation_element": ctx.evaluation_element,
        "language_name": _language_name(language),
    }

    if kind is SuggestionKind.SPECIFIC:
        closed_list = ""
        if curriculum:
            closed_list = _render(
                CLOSED_LIST_TEMPLATE,
                criteria=_bullet_lines([c.label for c in curriculum], indent=""),
            )
        prompt = _render(SPECIFIC_SUGGESTION_TEMPLATE, closed_list=closed_list, **values)
        schema = SPECIFIC_SUGGESTION_SCHEMA
    else:
        prompt = _render(EVALUATION_SUGGESTION_TEMPLATE, **values)
        schema = EVALUATION_SUGGESTION_SCHEMA

    return GenerationRequest(prompt=prompt, schema=schema, temperature=temperature)


def build_chat_request(
    message: str,
    *,
    rubric: Optional[Rubric] = None,
    language: str = "es",
    temperature: float = 0.7,
) -> GenerationRequest:
    rubric_context = ""
    if rubric is not None:
        rubric_context = (
            "\nRúbrica sobre la que trabaja el docente (JSON):\n"
            + json.dumps(rubric.to_dict(), ensure_ascii=False)
            + "\n"
        )
    prompt = _render(
        CHAT_TEMPLATE,
        language_name=_language_name(language),
        rubric_context=rubric_context,
        message=message.strip(),
    )
    return GenerationRequest(prompt=prompt, schema=None, temperature=temperature)

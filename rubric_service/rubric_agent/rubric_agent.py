# rubric_agent.py

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Union

import openai
from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_openai import ChatOpenAI

from ..logging_utils import log_function
from .curriculum_loader import find_curriculum
from .errors import ConfigurationError, NetworkError
from .form_models import FormContext, SuggestionContext, SuggestionKind, WeightedCriterion
from .form_rules import add_unique
from .prompts import (
    GenerationRequest,
    build_chat_request,
    build_rubric_request,
    build_suggestion_request,
)
from .rubric import Rubric
from .validation import (
    normalize_weights,
    validate_rubric_response,
    validate_suggestion_response,
)

logger = logging.getLogger(__name__)

SCHEMA_INSTRUCTIONS = "\n\nEl JSON de salida debe cumplir este JSON Schema:\n{schema}"


class RubricAgent:
    """Generation client for rubrics, criteria suggestions and chat.

    One instance per process. The credential is checked here, so a missing
    key fails before any request is attempted.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        timeout: float | None = 60.0,
        rubric_temperature: float = 0.8,
        suggestion_temperature: float = 0.7,
        chat_temperature: float = 0.7,
        strict_validation: bool = True,
        llm: BaseChatModel | None = None,
    ) -> None:
        self.rubric_temperature = rubric_temperature
        self.suggestion_temperature = suggestion_temperature
        self.chat_temperature = chat_temperature
        self.strict_validation = strict_validation

        if llm is not None:
            self._llm = llm
            return

        if not api_key or not api_key.strip():
            raise ConfigurationError("OpenAI API key is not configured")

        llm_kwargs: Dict[str, Any] = {
            "model": model,
            "api_key": api_key.strip(),
            "timeout": timeout,
            # One outbound call per request, no silent retries
            "max_retries": 0,
        }
        if base_url is not None:
            llm_kwargs["base_url"] = base_url

        self._llm = ChatOpenAI(**llm_kwargs)

    @property
    def model_name(self) -> str:
        return getattr(self._llm, "model_name", None) or type(self._llm).__name__

    # ---------- Raw completion ----------

    def complete(self, request: GenerationRequest) -> str:
        """Send one prompt and return the raw response text."""
        bind_kwargs: Dict[str, Any] = {"temperature": request.temperature}
        prompt = request.prompt

        if request.schema is not None:
            prompt += SCHEMA_INSTRUCTIONS.format(
                schema=json.dumps(request.schema, ensure_ascii=False)
            )
            # Structured output only accepts object roots; arrays rely on the prompt
            if request.schema.get("type") == "object":
                bind_kwargs["response_format"] = {
                    "type": "json_schema",
                    "json_schema": {"name": "response", "schema": request.schema, "strict": False},
                }

        chain = self._llm.bind(**bind_kwargs) | StrOutputParser()
        try:
            return chain.invoke(prompt).strip()
        except openai.OpenAIError as e:
            logger.error(f"Generation call failed: {e}")
            raise NetworkError(str(e)) from e

    # ---------- Rubric ----------

    @log_function
    def generate_rubric(self, ctx: FormContext, *, language: str = "es") -> Rubric:
        request = build_rubric_request(
            ctx, language=language, temperature=self.rubric_temperature
        )
        raw_output = self.complete(request)
        rubric = validate_rubric_response(raw_output, ctx, strict=self.strict_validation)
        if rubric.warnings:
            logger.warning(f"Rubric '{rubric.title}' built with {len(rubric.warnings)} warning(s)")
        return rubric

    # ---------- Suggestions ----------

    @log_function
    def suggest_criteria(
        self,
        ctx: SuggestionContext,
        kind: SuggestionKind,
        *,
        language: str = "es",
    ) -> Union[List[str], List[WeightedCriterion]]:
        """Suggest curricular criteria or weighted evaluation aspects.

        Results are de-duplicated case-insensitively. Weighted suggestions
        are renormalized to sum to 100 since the model's arithmetic is not
        trusted.
        """
        kind = SuggestionKind(kind)
        curriculum = None
        if kind is SuggestionKind.SPECIFIC:
            curriculum = find_curriculum(ctx.stage, ctx.subject, ctx.course)

        request = build_suggestion_request(
            ctx,
            kind,
            curriculum=curriculum,
            language=language,
            temperature=self.suggestion_temperature,
        )
        raw_output = self.complete(request)
        suggestions = validate_suggestion_response(raw_output, kind)

        if kind is SuggestionKind.SPECIFIC:
            unique: List[str] = []
            for suggestion in suggestions:
                unique = add_unique(unique, suggestion)
            return unique

        seen = set()
        weighted: List[WeightedCriterion] = []
        for criterion in suggestions:
            key = criterion.name.lower()
            if key not in seen:
                seen.add(key)
                weighted.append(criterion)
        return normalize_weights(weighted)

    # ---------- Chat ----------

    @log_function
    def chat(
        self,
        message: str,
        *,
        rubric: Optional[Rubric] = None,
        language: str = "es",
    ) -> str:
        request = build_chat_request(
            message, rubric=rubric, language=language, temperature=self.chat_temperature
        )
        return self.complete(request)

"""
Environment-driven settings for the Rubric Service.

Defaults are safe for local development; Cloud Functions deployments set
the variables with --set-env-vars. Malformed values fall back to the
default instead of failing at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str | None = None
    rubric_temperature: float = 0.8
    suggestion_temperature: float = 0.7
    chat_temperature: float = 0.7
    generation_timeout_s: float = 60.0
    strict_validation: bool = True
    max_saved_rubrics: int = 10
    default_language: str = "es"
    cors_origin: str = "*"
    firestore_database: str = "(default)"


def load_settings() -> Settings:
    return Settings(
        openai_model=_env_str("OPENAI_MODEL", Settings.openai_model),
        openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        rubric_temperature=_env_float("RUBRIC_TEMPERATURE", Settings.rubric_temperature),
        suggestion_temperature=_env_float(
            "SUGGESTION_TEMPERATURE", Settings.suggestion_temperature
        ),
        chat_temperature=_env_float("CHAT_TEMPERATURE", Settings.chat_temperature),
        generation_timeout_s=_env_float("GENERATION_TIMEOUT_S", Settings.generation_timeout_s),
        strict_validation=_env_bool("STRICT_VALIDATION", Settings.strict_validation),
        max_saved_rubrics=_env_int("MAX_SAVED_RUBRICS", Settings.max_saved_rubrics),
        default_language=_env_str("DEFAULT_LANGUAGE", Settings.default_language),
        cors_origin=_env_str("CORS_ORIGIN", Settings.cors_origin),
        firestore_database=_env_str("FIRESTORE_DATABASE", Settings.firestore_database),
    )

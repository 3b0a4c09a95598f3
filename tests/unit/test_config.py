"""
Unit tests for rubric_service/config.py.

Settings come from the environment; unset or malformed values fall back
to the defaults.
"""

import os
from unittest.mock import patch

import pytest

from rubric_service.config import Settings, load_settings

ENV_NAMES = (
    "OPENAI_MODEL", "OPENAI_BASE_URL", "RUBRIC_TEMPERATURE", "SUGGESTION_TEMPERATURE",
    "CHAT_TEMPERATURE", "GENERATION_TIMEOUT_S", "STRICT_VALIDATION", "MAX_SAVED_RUBRICS",
    "DEFAULT_LANGUAGE", "CORS_ORIGIN", "FIRESTORE_DATABASE",
)


@pytest.fixture
def env():
    """Environment with none of the service variables set."""
    with patch.dict("os.environ", {}, clear=False):
        for name in ENV_NAMES:
            os.environ.pop(name, None)
        yield os.environ


class TestLoadSettings:
    def test_defaults(self, env):
        settings = load_settings()
        assert settings == Settings()
        assert settings.strict_validation is True
        assert settings.max_saved_rubrics == 10
        assert settings.openai_base_url is None

    def test_overrides(self, env):
        env.update({
            "OPENAI_MODEL": "gpt-4o",
            "OPENAI_BASE_URL": "http://localhost:11434/v1",
            "RUBRIC_TEMPERATURE": "0.2",
            "GENERATION_TIMEOUT_S": "15",
            "MAX_SAVED_RUBRICS": "5",
            "DEFAULT_LANGUAGE": "fr",
            "CORS_ORIGIN": "https://rubricas.example.com",
            "FIRESTORE_DATABASE": "rubricas",
        })
        settings = load_settings()
        assert settings.openai_model == "gpt-4o"
        assert settings.openai_base_url == "http://localhost:11434/v1"
        assert settings.rubric_temperature == 0.2
        assert settings.generation_timeout_s == 15.0
        assert settings.max_saved_rubrics == 5
        assert settings.default_language == "fr"
        assert settings.cors_origin == "https://rubricas.example.com"
        assert settings.firestore_database == "rubricas"

    @pytest.mark.parametrize("raw,expected", [
        ("false", False), ("0", False), ("no", False),
        ("true", True), ("1", True), (" ON ", True),
    ])
    def test_strict_validation_flag(self, env, raw, expected):
        env["STRICT_VALIDATION"] = raw
        assert load_settings().strict_validation is expected

    def test_malformed_numbers_use_defaults(self, env):
        env["MAX_SAVED_RUBRICS"] = "ten"
        env["CHAT_TEMPERATURE"] = "warm"
        settings = load_settings()
        assert settings.max_saved_rubrics == 10
        assert settings.chat_temperature == 0.7

    def test_blank_strings_use_defaults(self, env):
        env["OPENAI_MODEL"] = "   "
        env["OPENAI_BASE_URL"] = ""
        settings = load_settings()
        assert settings.openai_model == "gpt-4o-mini"
        assert settings.openai_base_url is None

    def test_settings_are_frozen(self):
        with pytest.raises(Exception):
            Settings().openai_model = "other"

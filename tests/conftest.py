"""
Shared test configuration and fixtures.

Unit tests never talk to GCP or OpenAI: Firestore, Secret Manager and
Firebase Auth are patched per test, and the model is replaced with
langchain's FakeListChatModel. The fixtures below build the form that
drives most tests and a well-formed model answer for it.
"""

import json
import os

import pytest

from rubric_service.rubric_agent.form_models import FormContext, WeightedCriterion
from tests.helpers.rubric_payloads import LEVELS, rubric_payload


def pytest_configure(config):
    """Keep module-level setup on the local code paths."""
    # K_SERVICE switches logging to google-cloud-logging; OPENAI_API_KEY
    # would bypass the credential lookups under test.
    for name in ("K_SERVICE", "OPENAI_API_KEY"):
        os.environ.pop(name, None)


@pytest.fixture
def form_context():
    """The two-item example form: Claridad 60 / Vocabulario 40, five levels."""
    return FormContext(
        stage="Educación Primaria",
        course="5º",
        subject="Lengua Castellana y Literatura",
        evaluation_element="Exposición oral",
        performance_levels=LEVELS,
        specific_criteria=("1.1. Comprender e interpretar el sentido global de textos orales",),
        evaluation_criteria=(
            WeightedCriterion(name="Claridad", weight=60),
            WeightedCriterion(name="Vocabulario", weight=40),
        ),
    )


@pytest.fixture
def rubric_json():
    return json.dumps(rubric_payload(), ensure_ascii=False)

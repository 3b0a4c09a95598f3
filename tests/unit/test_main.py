"""
Unit tests for rubric_service/main.py HTTP functions.

Handlers are called directly inside a Flask test request context. Token
verification and Firestore are patched; the generation client is a real
RubricAgent backed by FakeListChatModel so validation runs end to end.
"""

from unittest.mock import patch

import pytest
from flask import Flask
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from rubric_service import main
from rubric_service.rubric_agent.errors import ConfigurationError, NetworkError
from rubric_service.rubric_agent.rubric import Rubric, SavedRubric
from rubric_service.rubric_agent.rubric_agent import RubricAgent
from tests.helpers.rubric_payloads import rubric_payload

app = Flask(__name__)

OWNER = "docente-42"


def _call(handler, method="POST", path="/", **kwargs):
    with app.test_request_context(path, method=method, **kwargs) as ctx:
        return handler(ctx.request)


def _agent(*responses, **kwargs):
    return RubricAgent(llm=FakeListChatModel(responses=list(responses)), **kwargs)


def _stored_rubric():
    payload = rubric_payload()
    payload["items"][0]["weight"] = 60
    payload["items"][1]["weight"] = 40
    return payload


@pytest.fixture
def signed_in():
    with patch("rubric_service.main.verify_token", return_value=OWNER) as mock_verify:
        yield mock_verify


@pytest.fixture
def signed_out():
    with patch("rubric_service.main.verify_token", return_value=None) as mock_verify:
        yield mock_verify


@pytest.fixture
def agent():
    """Patch get_agent; tests set .return_value or .side_effect."""
    with patch("rubric_service.main.get_agent") as mock_get_agent:
        yield mock_get_agent


@pytest.fixture
def save():
    with patch("rubric_service.main.save_rubric") as mock_save:
        mock_save.side_effect = lambda owner, rubric, ctx, limit: SavedRubric(
            id="1760866200000", rubric=rubric, form_data=ctx,
            created_at="2026-10-19T09:30:00+00:00", title=rubric.title,
        )
        yield mock_save


class TestPreflight:
    @pytest.mark.parametrize("handler,methods", [
        (main.generate_rubric, "POST"),
        (main.suggest_criteria, "POST"),
        (main.chat, "POST"),
        (main.saved_rubrics, "GET,POST,DELETE"),
        (main.export_rubric, "POST"),
    ])
    def test_options(self, handler, methods):
        body, status, headers = _call(handler, method="OPTIONS")
        assert (body, status) == ("", 204)
        assert headers["Access-Control-Allow-Methods"] == methods
        assert headers["Access-Control-Allow-Origin"] == "*"
        assert "Authorization" in headers["Access-Control-Allow-Headers"]


class TestGenerateRubric:
    def test_requires_auth(self, signed_out, agent):
        body, status, _ = _call(main.generate_rubric, json={"formData": {}})
        assert status == 401
        assert body["errorKey"] == "error_unauthorized"
        agent.assert_not_called()

    def test_success_returns_and_saves(self, signed_in, agent, save, form_context, rubric_json):
        agent.return_value = _agent(rubric_json)

        body, status, headers = _call(
            main.generate_rubric, json={"formData": form_context.to_dict()}
        )

        assert status == 200
        assert headers["Content-Type"] == "application/json"
        assert [(i["itemName"], i["weight"]) for i in body["rubric"]["items"]] == [
            ("Claridad", 60), ("Vocabulario", 40),
        ]
        assert body["saved"] == {"id": "1760866200000", "createdAt": "2026-10-19T09:30:00+00:00"}

        owner, rubric, ctx = save.call_args.args
        assert owner == OWNER
        assert isinstance(rubric, Rubric)
        assert ctx == form_context
        assert save.call_args.kwargs == {"limit": 10}

    def test_weights_not_100(self, signed_in, agent, form_context):
        data = form_context.to_dict()
        data["evaluationCriteria"][0]["weight"] = 50

        body, status, _ = _call(main.generate_rubric, path="/?lang=en", json={"formData": data})

        assert status == 400
        assert body["errorKey"] == "weighting_must_be_100"
        assert body["error"] == "Total weighting must be exactly 100% to generate the rubric."
        agent.assert_not_called()

    def test_missing_form(self, signed_in, agent):
        body, status, _ = _call(main.generate_rubric, json={})
        assert status == 400
        assert body["errorKey"] == "error_incomplete_form"

    def test_malformed_weight(self, signed_in, agent, form_context):
        data = form_context.to_dict()
        data["evaluationCriteria"][0]["weight"] = "sesenta"
        body, status, _ = _call(main.generate_rubric, json={"formData": data})
        assert status == 400
        assert body["errorKey"] == "error_incomplete_form"

    def test_levels_as_string(self, signed_in, agent, form_context):
        data = form_context.to_dict()
        data["performanceLevels"] = "Bien"
        body, status, _ = _call(main.generate_rubric, json={"formData": data})
        assert status == 400
        assert body["errorKey"] == "error_incomplete_form"
        agent.assert_not_called()

    def test_missing_api_key(self, signed_in, agent, form_context):
        agent.side_effect = ConfigurationError("no key")
        body, status, _ = _call(main.generate_rubric, json={"formData": form_context.to_dict()})
        assert status == 503
        assert body["errorKey"] == "error_api_key_not_set"

    def test_network_error(self, signed_in, agent, form_context):
        agent.return_value.generate_rubric.side_effect = NetworkError("timeout")
        body, status, _ = _call(main.generate_rubric, json={"formData": form_context.to_dict()})
        assert status == 502
        assert body["errorKey"] == "error_generating_rubric_from_service"

    def test_invalid_ai_response(self, signed_in, agent, save, form_context):
        agent.return_value = _agent('```json\n{"title":"X","items":[]}\n```')

        body, status, _ = _call(main.generate_rubric, json={"formData": form_context.to_dict()})

        assert status == 502
        assert body["errorKey"] == "error_invalid_ai_response"
        assert body["error"] == "Formato de respuesta de la IA inválido."
        save.assert_not_called()

    def test_save_failure_still_returns_rubric(self, signed_in, agent, form_context, rubric_json):
        agent.return_value = _agent(rubric_json)
        with patch("rubric_service.main.save_rubric", side_effect=RuntimeError("firestore down")):
            body, status, _ = _call(
                main.generate_rubric, json={"formData": form_context.to_dict()}
            )
        assert status == 200
        assert body["saved"] is None
        assert body["rubric"]["title"] == "Rúbrica de exposición oral"

    def test_unexpected_error_is_generic(self, signed_in, agent, form_context):
        agent.return_value.generate_rubric.side_effect = KeyError("boom")
        body, status, _ = _call(
            main.generate_rubric, json={"formData": form_context.to_dict(), "language": "fr"}
        )
        assert status == 500
        assert body["errorKey"] == "error_generating_rubric"
        assert body["error"].startswith("Une erreur")


class TestSuggestCriteria:
    def _body(self, form_context, kind):
        data = form_context.to_dict()
        context = {k: data[k] for k in ("stage", "course", "subject", "evaluationElement")}
        return {"context": context, "kind": kind}

    def test_specific(self, signed_in, agent, form_context):
        agent.return_value = _agent('["1.1. Comprender textos", "1.1. comprender textos"]')

        body, status, _ = _call(main.suggest_criteria, json=self._body(form_context, "specific"))

        assert status == 200
        assert body == {"kind": "specific", "suggestions": ["1.1. Comprender textos"]}

    def test_evaluation(self, signed_in, agent, form_context):
        agent.return_value = _agent('[{"name": "Fluidez", "weight": 1}, {"name": "Tono", "weight": 1}]')

        body, status, _ = _call(main.suggest_criteria, json=self._body(form_context, "evaluation"))

        assert status == 200
        assert body["suggestions"] == [
            {"name": "Fluidez", "weight": 50},
            {"name": "Tono", "weight": 50},
        ]

    def test_unknown_kind(self, signed_in, agent, form_context):
        body, status, _ = _call(main.suggest_criteria, json=self._body(form_context, "other"))
        assert status == 400
        assert body["errorKey"] == "error_bad_request"

    def test_incomplete_context(self, signed_in, agent):
        body, status, _ = _call(
            main.suggest_criteria, json={"context": {"stage": "ESO"}, "kind": "specific"}
        )
        assert status == 400
        assert body["errorKey"] == "error_incomplete_context"
        agent.assert_not_called()

    def test_missing_context(self, signed_in, agent):
        body, status, _ = _call(main.suggest_criteria, json={"kind": "evaluation"})
        assert status == 400
        assert body["errorKey"] == "error_incomplete_context"

    def test_bad_model_answer(self, signed_in, agent, form_context):
        agent.return_value = _agent("Aquí tienes algunas ideas...")
        body, status, _ = _call(main.suggest_criteria, json=self._body(form_context, "specific"))
        assert status == 502
        assert body["errorKey"] == "error_generating_suggestions"

    def test_non_finite_weight_is_bad_model_answer(self, signed_in, agent, form_context):
        agent.return_value = _agent('[{"name": "Fluidez", "weight": NaN}, {"name": "Tono", "weight": 50}]')
        body, status, _ = _call(main.suggest_criteria, json=self._body(form_context, "evaluation"))
        assert status == 502
        assert body["errorKey"] == "error_generating_suggestions"

    def test_requires_auth(self, signed_out, agent):
        _, status, _ = _call(main.suggest_criteria, json={"kind": "specific"})
        assert status == 401


class TestChat:
    def test_reply(self, signed_in, agent):
        agent.return_value = _agent("Usa verbos observables.")
        body, status, _ = _call(main.chat, json={"message": "¿Cómo redacto descriptores?"})
        assert status == 200
        assert body == {"reply": "Usa verbos observables."}

    def test_with_rubric(self, signed_in, agent):
        agent.return_value.chat.return_value = "Bien."
        _call(main.chat, json={"message": "¿Está bien?", "rubric": _stored_rubric()})
        rubric = agent.return_value.chat.call_args.kwargs["rubric"]
        assert rubric.title == "Rúbrica de exposición oral"

    def test_empty_message(self, signed_in, agent):
        body, status, _ = _call(main.chat, json={"message": "  "})
        assert status == 400
        assert body["errorKey"] == "error_bad_request"

    def test_malformed_rubric(self, signed_in, agent):
        body, status, _ = _call(main.chat, json={"message": "Hola", "rubric": {"title": "T"}})
        assert status == 400
        assert body["errorKey"] == "error_bad_request"

    def test_network_error(self, signed_in, agent):
        agent.return_value.chat.side_effect = NetworkError("down")
        body, status, _ = _call(main.chat, json={"message": "Hola"})
        assert status == 502


class TestSavedRubrics:
    def test_list(self, signed_in, form_context):
        entry = SavedRubric(
            id="1", rubric=Rubric.from_dict(_stored_rubric()), form_data=form_context,
            created_at="2026-10-18T10:00:00+00:00", title="Rúbrica de exposición oral",
        )
        with patch("rubric_service.main.get_saved_rubrics", return_value=[entry]) as mock_get:
            body, status, _ = _call(main.saved_rubrics, method="GET")

        mock_get.assert_called_once_with(OWNER)
        assert status == 200
        assert body["rubrics"] == [entry.to_dict()]

    def test_save_edited(self, signed_in, save, form_context):
        edited = _stored_rubric()
        edited["items"][0]["descriptors"][0]["description"] = "Editado a mano"

        body, status, _ = _call(
            main.saved_rubrics, json={"rubric": edited, "formData": form_context.to_dict()}
        )

        assert status == 200
        assert body["saved"]["rubric"]["items"][0]["descriptors"][0]["description"] == "Editado a mano"
        assert body["saved"]["formData"] == form_context.to_dict()

    def test_save_malformed(self, signed_in, save, form_context):
        body, status, _ = _call(
            main.saved_rubrics, json={"rubric": {"items": []}, "formData": form_context.to_dict()}
        )
        assert status == 400
        save.assert_not_called()

    def test_delete(self, signed_in):
        with patch("rubric_service.main.delete_rubric", return_value=True) as mock_delete:
            body, status, _ = _call(main.saved_rubrics, method="DELETE", path="/?id=123")
        mock_delete.assert_called_once_with(OWNER, "123")
        assert (body, status) == ({"deleted": True}, 200)

    def test_delete_unknown(self, signed_in):
        with patch("rubric_service.main.delete_rubric", return_value=False):
            body, status, _ = _call(main.saved_rubrics, method="DELETE", path="/?id=999")
        assert status == 404
        assert body["errorKey"] == "error_not_found"

    def test_delete_without_id(self, signed_in):
        _, status, _ = _call(main.saved_rubrics, method="DELETE")
        assert status == 400

    def test_other_method(self, signed_in):
        _, status, _ = _call(main.saved_rubrics, method="PUT")
        assert status == 405

    def test_requires_auth(self, signed_out):
        _, status, _ = _call(main.saved_rubrics, method="GET")
        assert status == 401

    def test_storage_failure(self, signed_in):
        with patch("rubric_service.main.get_saved_rubrics", side_effect=RuntimeError("down")):
            body, status, _ = _call(main.saved_rubrics, method="GET")
        assert status == 500


class TestExportRubric:
    def test_text_default(self):
        body, status, headers = _call(main.export_rubric, json={"rubric": _stored_rubric()})
        assert status == 200
        assert headers["Content-Type"].startswith("text/plain")
        assert body.startswith("Rúbrica de exposición oral\n")
        assert "Claridad (60%)" in body

    def test_csv_attachment(self):
        body, _, headers = _call(
            main.export_rubric, json={"rubric": _stored_rubric(), "format": "CSV"}
        )
        assert headers["Content-Type"].startswith("text/csv")
        assert "attachment" in headers["Content-Disposition"]
        assert body.splitlines()[0].startswith("Ítem de Evaluación,Peso (%)")

    def test_html(self):
        body, _, headers = _call(
            main.export_rubric, json={"rubric": _stored_rubric(), "format": "html", "language": "en"}
        )
        assert headers["Content-Type"].startswith("text/html")
        assert '<html lang="en">' in body

    def test_unknown_format(self):
        body, status, _ = _call(main.export_rubric, json={"rubric": _stored_rubric(), "format": "pdf"})
        assert status == 400
        assert body["errorKey"] == "error_bad_request"

    def test_malformed_rubric(self):
        _, status, _ = _call(main.export_rubric, json={"rubric": None})
        assert status == 400


class TestGetAgent:
    def setup_method(self):
        main.get_agent.cache_clear()

    def teardown_method(self):
        main.get_agent.cache_clear()

    def test_missing_key_not_cached(self):
        with patch("rubric_service.main.get_openai_api_key", return_value=None):
            with pytest.raises(ConfigurationError):
                main.get_agent()
        with patch("rubric_service.main.get_openai_api_key", return_value="sk-test"), \
                patch("rubric_service.rubric_agent.rubric_agent.ChatOpenAI"):
            assert isinstance(main.get_agent(), RubricAgent)

    def test_built_once_from_settings(self):
        with patch("rubric_service.main.get_openai_api_key", return_value="sk-test") as mock_key, \
                patch("rubric_service.rubric_agent.rubric_agent.ChatOpenAI") as mock_cls:
            first = main.get_agent()
            second = main.get_agent()

        assert first is second
        mock_key.assert_called_once()
        kwargs = mock_cls.call_args.kwargs
        assert kwargs["model"] == main.SETTINGS.openai_model
        assert kwargs["timeout"] == main.SETTINGS.generation_timeout_s
        assert first.strict_validation is main.SETTINGS.strict_validation

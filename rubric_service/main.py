"""
Rubric Service - Cloud Functions Main Entry Point

HTTP functions called by the rubric builder in the browser. All of them
share this source directory and deploy with --trigger-http:

1. generate_rubric  - form context -> validated rubric (saved for the user)
2. suggest_criteria - curricular criteria or weighted aspects for a context
3. chat             - free-text assistant for rubric questions
4. saved_rubrics    - list (GET), save an edited rubric (POST), delete (DELETE)
5. export_rubric    - plain text, print HTML or CSV rendering of a rubric

Every function answers CORS preflight, requires a Firebase ID token except
export_rubric, and reports failures as {"error": <localized>, "errorKey": <key>}.
"""

import functools
import logging

import functions_framework
from flask import Request

from .auth import verify_token
from .config import load_settings
from .exporters import EXPORTERS
from .firestore_client import (
    delete_rubric,
    get_saved_rubrics,
    save_rubric,
)
from .logging_utils import log_function, setup_cloud_logging
from .rubric_agent.errors import (
    ConfigurationError,
    FormValidationError,
    InvalidAIResponseError,
    NetworkError,
    RubricServiceError,
    SchemaError,
)
from .rubric_agent.form_models import FormContext, SuggestionContext, SuggestionKind
from .rubric_agent.form_rules import validate_form_context, validate_suggestion_context
from .rubric_agent.rubric import Rubric
from .rubric_agent.rubric_agent import RubricAgent
from .secrets import get_openai_api_key
from .translations import error_message, resolve_language, translate

# Setup Logging - structured JSON on GCP, plain text locally
setup_cloud_logging()
logger = logging.getLogger(__name__)

SETTINGS = load_settings()

# Error kind -> HTTP status
ERROR_STATUS = (
    (FormValidationError, 400),
    (ConfigurationError, 503),
    (NetworkError, 502),
    (InvalidAIResponseError, 502),
)

logger.info("Rubric Service module loaded. Logging is operational.")


@functools.lru_cache(maxsize=1)
def get_agent() -> RubricAgent:
    """The process-wide generation client, built on first use.

    A missing credential raises ConfigurationError and is not cached, so a
    key configured later is picked up by the next request.
    """
    return RubricAgent(
        api_key=get_openai_api_key(),
        model=SETTINGS.openai_model,
        base_url=SETTINGS.openai_base_url,
        timeout=SETTINGS.generation_timeout_s,
        rubric_temperature=SETTINGS.rubric_temperature,
        suggestion_temperature=SETTINGS.suggestion_temperature,
        chat_temperature=SETTINGS.chat_temperature,
        strict_validation=SETTINGS.strict_validation,
    )


# ============================================================================
# Shared request helpers
# ============================================================================

def _preflight(methods: str):
    headers = {
        'Access-Control-Allow-Origin': SETTINGS.cors_origin,
        'Access-Control-Allow-Methods': methods,
        'Access-Control-Allow-Headers': 'Content-Type,Authorization',
        'Access-Control-Max-Age': '3600'
    }
    return ('', 204, headers)


def _headers(content_type: str = 'application/json') -> dict:
    return {
        'Access-Control-Allow-Origin': SETTINGS.cors_origin,
        'Content-Type': content_type,
    }


def _error(key: str, status: int, language: str, message: str | None = None):
    body = {'error': message or translate(key, language), 'errorKey': key}
    return body, status, _headers()


def _service_error(exc: RubricServiceError, language: str, fallback_key: str):
    status = next((code for kind, code in ERROR_STATUS if isinstance(exc, kind)), 500)
    message = error_message(exc, language, fallback_key)
    return _error(exc.message_key, status, language, message)


def _json_body(request: Request) -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _parse_form(data) -> FormContext:
    if not isinstance(data, dict):
        raise FormValidationError("formData must be an object")
    try:
        return FormContext.from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        raise FormValidationError(f"malformed formData: {e}") from e


def _parse_rubric(data) -> Rubric:
    try:
        return Rubric.from_dict(data)
    except SchemaError as e:
        raise FormValidationError(str(e), message_key="error_bad_request") from e


# ============================================================================
# HTTP Cloud Function: generate_rubric
# ============================================================================

@functions_framework.http
@log_function
def generate_rubric(request: Request):
    """Generate a rubric from the form and save it to the user's list.

    Request body:
    {
        "formData": {"stage": ..., "course": ..., "subject": ...,
                     "evaluationElement": ..., "performanceLevels": [...],
                     "specificCriteria": [...],
                     "evaluationCriteria": [{"name": ..., "weight": ...}]},
        "language": "es"
    }

    Response:
    {
        "rubric": {...},
        "saved": {"id": ..., "createdAt": ...} | null
    }
    """
    if request.method == 'OPTIONS':
        return _preflight('POST')

    language = resolve_language(request, SETTINGS.default_language)
    fallback = 'error_generating_rubric'

    owner = verify_token(request)
    if not owner:
        return _error('error_unauthorized', 401, language)

    try:
        ctx = _parse_form(_json_body(request).get('formData'))
        validate_form_context(ctx)
        rubric = get_agent().generate_rubric(ctx, language=language)
    except RubricServiceError as e:
        logger.warning(f"generate_rubric failed for {owner}: {e}")
        return _service_error(e, language, fallback)
    except Exception as e:
        logger.error(f"Unexpected error in generate_rubric: {e}", exc_info=True)
        return _error(fallback, 500, language)

    saved = None
    try:
        entry = save_rubric(owner, rubric, ctx, limit=SETTINGS.max_saved_rubrics)
        saved = {'id': entry.id, 'createdAt': entry.created_at}
    except Exception as e:
        # The rubric is still returned; the browser can save it again
        logger.error(f"Could not save generated rubric for {owner}: {e}", exc_info=True)

    return {'rubric': rubric.to_dict(), 'saved': saved}, 200, _headers()


# ============================================================================
# HTTP Cloud Function: suggest_criteria
# ============================================================================

@functions_framework.http
@log_function
def suggest_criteria(request: Request):
    """Suggest curricular criteria ("specific") or weighted aspects ("evaluation").

    Request body:
    {
        "context": {"stage": ..., "course": ..., "subject": ..., "evaluationElement": ...},
        "kind": "specific" | "evaluation"
    }

    Response:
    {"kind": "specific", "suggestions": ["1.1. ...", ...]}
    {"kind": "evaluation", "suggestions": [{"name": ..., "weight": 40}, ...]}
    """
    if request.method == 'OPTIONS':
        return _preflight('POST')

    language = resolve_language(request, SETTINGS.default_language)
    fallback = 'error_getting_suggestions'

    owner = verify_token(request)
    if not owner:
        return _error('error_unauthorized', 401, language)

    body = _json_body(request)
    try:
        kind = SuggestionKind(body.get('kind'))
    except ValueError:
        return _error('error_bad_request', 400, language)

    try:
        context = body.get('context')
        if not isinstance(context, dict):
            raise FormValidationError(
                "context must be an object", message_key="error_incomplete_context"
            )
        ctx = SuggestionContext.from_dict(context)
        validate_suggestion_context(ctx)
        suggestions = get_agent().suggest_criteria(ctx, kind, language=language)
    except RubricServiceError as e:
        logger.warning(f"suggest_criteria ({kind.value}) failed for {owner}: {e}")
        return _service_error(e, language, fallback)
    except Exception as e:
        logger.error(f"Unexpected error in suggest_criteria: {e}", exc_info=True)
        return _error(fallback, 500, language)

    if kind is SuggestionKind.EVALUATION:
        payload = [c.to_dict() for c in suggestions]
    else:
        payload = list(suggestions)
    return {'kind': kind.value, 'suggestions': payload}, 200, _headers()


# ============================================================================
# HTTP Cloud Function: chat
# ============================================================================

@functions_framework.http
@log_function
def chat(request: Request):
    """Free-text assistant.

    Request body: {"message": "...", "rubric": {...} (optional)}
    Response:     {"reply": "..."}
    """
    if request.method == 'OPTIONS':
        return _preflight('POST')

    language = resolve_language(request, SETTINGS.default_language)
    fallback = 'chat_error'

    owner = verify_token(request)
    if not owner:
        return _error('error_unauthorized', 401, language)

    body = _json_body(request)
    message = (body.get('message') or '').strip()
    if not message:
        return _error('error_bad_request', 400, language)

    try:
        rubric = _parse_rubric(body['rubric']) if body.get('rubric') else None
        reply = get_agent().chat(message, rubric=rubric, language=language)
    except RubricServiceError as e:
        logger.warning(f"chat failed for {owner}: {e}")
        return _service_error(e, language, fallback)
    except Exception as e:
        logger.error(f"Unexpected error in chat: {e}", exc_info=True)
        return _error(fallback, 500, language)

    return {'reply': reply}, 200, _headers()


# ============================================================================
# HTTP Cloud Function: saved_rubrics
# ============================================================================

@functions_framework.http
@log_function
def saved_rubrics(request: Request):
    """The signed-in user's saved rubrics (newest first, at most 10).

    GET                               -> {"rubrics": [...]}
    POST {"rubric": ..., "formData": ...} -> {"saved": {...}}  (edit-save)
    DELETE ?id=<id>                   -> {"deleted": true}
    """
    if request.method == 'OPTIONS':
        return _preflight('GET,POST,DELETE')

    language = resolve_language(request, SETTINGS.default_language)

    owner = verify_token(request)
    if not owner:
        return _error('error_unauthorized', 401, language)

    try:
        if request.method == 'GET':
            rubrics = [s.to_dict() for s in get_saved_rubrics(owner)]
            return {'rubrics': rubrics}, 200, _headers()

        if request.method == 'POST':
            body = _json_body(request)
            rubric = _parse_rubric(body.get('rubric'))
            ctx = _parse_form(body.get('formData'))
            entry = save_rubric(owner, rubric, ctx, limit=SETTINGS.max_saved_rubrics)
            return {'saved': entry.to_dict()}, 200, _headers()

        if request.method == 'DELETE':
            rubric_id = request.args.get('id') or _json_body(request).get('id')
            if not rubric_id:
                return _error('error_bad_request', 400, language)
            if not delete_rubric(owner, str(rubric_id)):
                return _error('error_not_found', 404, language)
            return {'deleted': True}, 200, _headers()
    except RubricServiceError as e:
        return _service_error(e, language, 'error_bad_request')
    except Exception as e:
        logger.error(f"Unexpected error in saved_rubrics: {e}", exc_info=True)
        return _error('error_generating_rubric', 500, language)

    return _error('error_bad_request', 405, language)


# ============================================================================
# HTTP Cloud Function: export_rubric
# ============================================================================

@functions_framework.http
@log_function
def export_rubric(request: Request):
    """Render a rubric for copy, print/word-processor or spreadsheet use.

    Request body: {"rubric": {...}, "format": "text" | "html" | "csv"}
    Response: the rendered document with its content type.
    """
    if request.method == 'OPTIONS':
        return _preflight('POST')

    language = resolve_language(request, SETTINGS.default_language)
    body = _json_body(request)

    export_format = (body.get('format') or 'text').lower()
    if export_format not in EXPORTERS:
        return _error('error_bad_request', 400, language)

    try:
        rubric = _parse_rubric(body.get('rubric'))
    except RubricServiceError as e:
        return _service_error(e, language, 'error_bad_request')

    render, content_type = EXPORTERS[export_format]
    headers = _headers(content_type)
    if export_format == 'csv':
        headers['Content-Disposition'] = 'attachment; filename="rubrica.csv"'
    return render(rubric, language), 200, headers

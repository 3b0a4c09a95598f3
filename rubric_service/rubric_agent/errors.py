# errors.py

from __future__ import annotations

from dataclasses import dataclass


class RubricServiceError(Exception):
    """Base class for errors surfaced to the user as a localized message.

    ``message_key`` names the entry in ``translations.py`` that describes
    the failure. The exception text itself is for logs only.
    """

    message_key = "error_generating_rubric"

    def __init__(self, message: str = "", *, message_key: str | None = None) -> None:
        super().__init__(message or self.__class__.__name__)
        if message_key is not None:
            self.message_key = message_key


class ConfigurationError(RubricServiceError):
    """The generation credential is not configured."""

    message_key = "error_api_key_not_set"


class NetworkError(RubricServiceError):
    """The outbound call to the model failed or was rejected."""

    message_key = "error_generating_rubric_from_service"


class InvalidAIResponseError(RubricServiceError):
    """The model answered with something we cannot turn into a result."""

    message_key = "error_invalid_ai_response"


class ParseError(InvalidAIResponseError):
    """Response text is not valid JSON."""


class SchemaError(InvalidAIResponseError):
    """Parsed JSON is missing required fields or has the wrong shape."""


class InvalidSuggestionResponseError(SchemaError):
    """A criteria suggestion response has the wrong shape."""

    message_key = "error_generating_suggestions"


class FormValidationError(RubricServiceError):
    """The submitted form is not ready for generation."""

    message_key = "error_incomplete_form"


@dataclass(frozen=True)
class ValidationWarning:
    """Non-fatal mismatch between what was requested and what came back."""

    code: str
    detail: str

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.detail}

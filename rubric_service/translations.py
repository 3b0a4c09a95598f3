"""
User-facing messages in Spanish, English and French.

Lookups fall back to Spanish and then to the key itself. Errors carry a
``message_key``; ``error_message`` turns an exception into text, falling
back to the generic message of the operation that failed.
"""

from __future__ import annotations

from typing import Optional

SUPPORTED_LANGUAGES = ("es", "en", "fr")
DEFAULT_LANGUAGE = "es"

TRANSLATIONS = {
    "es": {
        "error_generating_rubric": "Hubo un error al generar la rúbrica. Por favor, inténtalo de nuevo.",
        "error_api_key_not_set": "La clave de la API de IA no está configurada. Contacta con el administrador del servicio.",
        "error_invalid_ai_response": "Formato de respuesta de la IA inválido.",
        "error_generating_rubric_from_service": "No se pudo generar la rúbrica desde el servicio de IA.",
        "error_getting_suggestions": "Error al obtener sugerencias.",
        "error_generating_suggestions": "No se pudieron generar las sugerencias.",
        "chat_error": "Hubo un error al contactar con el asistente.",
        "error_incomplete_form": "El formulario está incompleto.",
        "error_incomplete_context": "Completa la etapa, el curso, la asignatura y el elemento a evaluar.",
        "error_missing_levels": "Añade al menos un nivel de desempeño.",
        "error_duplicate_levels": "Los niveles de desempeño no pueden repetirse.",
        "error_missing_specific_criteria": "Añade al menos un criterio de evaluación del currículo.",
        "error_missing_evaluation_criteria": "Añade al menos un aspecto a evaluar con su ponderación.",
        "error_duplicate_criteria": "Los aspectos a evaluar deben tener nombres distintos.",
        "weighting_must_be_100": "La ponderación total debe ser exactamente 100% para poder generar la rúbrica.",
        "error_unauthorized": "No autorizado: sesión inválida o ausente.",
        "error_not_found": "No se encontró la rúbrica guardada.",
        "error_bad_request": "Solicitud no válida.",
        "evaluation_item": "Ítem de Evaluación",
        "weight": "Peso",
        "specific_criteria": "Criterios Específicos",
        "points": "pts",
        "footer": "Rúbrica generada con IA • Basada en la LOMLOE",
    },
    "en": {
        "error_generating_rubric": "There was an error generating the rubric. Please try again.",
        "error_api_key_not_set": "The AI API key is not configured. Please contact the service administrator.",
        "error_invalid_ai_response": "Invalid response format from AI.",
        "error_generating_rubric_from_service": "Could not generate the rubric from the AI service.",
        "error_getting_suggestions": "Error getting suggestions.",
        "error_generating_suggestions": "Could not generate suggestions.",
        "chat_error": "There was an error contacting the assistant.",
        "error_incomplete_form": "The form is incomplete.",
        "error_incomplete_context": "Fill in the stage, course, subject and element to evaluate.",
        "error_missing_levels": "Add at least one performance level.",
        "error_duplicate_levels": "Performance levels cannot repeat.",
        "error_missing_specific_criteria": "Add at least one curricular evaluation criterion.",
        "error_missing_evaluation_criteria": "Add at least one weighted aspect to evaluate.",
        "error_duplicate_criteria": "Aspects to evaluate must have different names.",
        "weighting_must_be_100": "Total weighting must be exactly 100% to generate the rubric.",
        "error_unauthorized": "Unauthorized: invalid or missing session.",
        "error_not_found": "Saved rubric not found.",
        "error_bad_request": "Invalid request.",
        "evaluation_item": "Evaluation Item",
        "weight": "Weight",
        "specific_criteria": "Specific Criteria",
        "points": "pts",
        "footer": "AI-generated rubric • Based on the LOMLOE",
    },
    "fr": {
        "error_generating_rubric": "Une erreur est survenue lors de la génération de la grille. Veuillez réessayer.",
        "error_api_key_not_set": "La clé de l'API d'IA n'est pas configurée. Veuillez contacter l'administrateur du service.",
        "error_invalid_ai_response": "Format de réponse de l'IA invalide.",
        "error_generating_rubric_from_service": "Impossible de générer la grille depuis le service d'IA.",
        "error_getting_suggestions": "Erreur lors de l'obtention des suggestions.",
        "error_generating_suggestions": "Impossible de générer les suggestions.",
        "chat_error": "Une erreur est survenue en contactant l'assistant.",
        "error_incomplete_form": "Le formulaire est incomplet.",
        "error_incomplete_context": "Renseignez l'étape, le niveau, la matière et l'élément à évaluer.",
        "error_missing_levels": "Ajoutez au moins un niveau de performance.",
        "error_duplicate_levels": "Les niveaux de performance ne peuvent pas se répéter.",
        "error_missing_specific_criteria": "Ajoutez au moins un critère d'évaluation du programme.",
        "error_missing_evaluation_criteria": "Ajoutez au moins un aspect pondéré à évaluer.",
        "error_duplicate_criteria": "Les aspects à évaluer doivent avoir des noms différents.",
        "weighting_must_be_100": "La pondération totale doit être exactement de 100 % pour générer la grille.",
        "error_unauthorized": "Non autorisé : session invalide ou absente.",
        "error_not_found": "Grille enregistrée introuvable.",
        "error_bad_request": "Requête invalide.",
        "evaluation_item": "Élément d'évaluation",
        "weight": "Poids",
        "specific_criteria": "Critères spécifiques",
        "points": "pts",
        "footer": "Grille générée par IA • Basée sur la LOMLOE",
    },
}


def normalize_language(language: Optional[str]) -> str:
    code = (language or "").strip().lower()[:2]
    return code if code in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def has_translation(key: str, language: Optional[str]) -> bool:
    return key in TRANSLATIONS[normalize_language(language)]


def translate(key: str, language: Optional[str] = None) -> str:
    table = TRANSLATIONS[normalize_language(language)]
    if key in table:
        return table[key]
    return TRANSLATIONS[DEFAULT_LANGUAGE].get(key, key)


def error_message(
    exc: BaseException, language: Optional[str] = None, fallback_key: str = "error_generating_rubric"
) -> str:
    """Localized text for ``exc``; generic ``fallback_key`` text if the kind is unknown."""
    key = getattr(exc, "message_key", None)
    if key and has_translation(key, language):
        return translate(key, language)
    return translate(fallback_key, language)


def resolve_language(request, default: str = DEFAULT_LANGUAGE) -> str:
    """Pick the UI language: ?lang=, then JSON "language", then Accept-Language."""
    explicit = request.args.get("lang")
    if not explicit:
        body = request.get_json(silent=True) or {}
        explicit = body.get("language") if isinstance(body, dict) else None
    if explicit:
        return normalize_language(explicit)
    best = request.accept_languages.best_match(SUPPORTED_LANGUAGES)
    return best or normalize_language(default)

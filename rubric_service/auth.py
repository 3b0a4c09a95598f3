"""
Firebase Auth helpers for the Rubric Service.

Saved rubrics are stored per signed-in user; the verified token's uid
is the storage key.
"""

import logging

import firebase_admin
from flask import Request
from firebase_admin import auth as firebase_auth

from .logging_utils import log_function

logger = logging.getLogger(__name__)


def _ensure_app():
    """Initialize Firebase Admin once, on first token verification."""
    try:
        firebase_admin.get_app()
    except ValueError:
        firebase_admin.initialize_app()


@log_function
def verify_token(request: Request) -> str | None:
    """Verify the Firebase ID token from the Authorization header.

    Returns the user's uid (falling back to email) if valid, None otherwise.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None

    try:
        _ensure_app()
        id_token = auth_header[7:]  # Remove 'Bearer ' prefix
        decoded = firebase_auth.verify_id_token(id_token)
        return decoded.get("uid") or decoded.get("email")
    except Exception as e:
        logger.warning(f"Token verification failed: {e}")
        return None

"""
Credential lookup for the Rubric Service.

The generation credential is the only secret the service needs. It is
read from Secret Manager when deployed and from OPENAI_API_KEY locally.
"""


import logging
import os

from google.cloud import secretmanager

from .logging_utils import log_function

logger = logging.getLogger(__name__)

OPENAI_SECRET_ID = "openai-api-key"

# Module-level caches
_sm_client: secretmanager.SecretManagerServiceClient | None = None
_project_id: str | None = None


def _get_sm_client() -> secretmanager.SecretManagerServiceClient:
    """Return a cached Secret Manager client."""
    global _sm_client
    if _sm_client is None:
        _sm_client = secretmanager.SecretManagerServiceClient()
    return _sm_client


@log_function
def get_project_id() -> str | None:
    """Resolve the GCP project ID from GCP_PROJECT or GOOGLE_CLOUD_PROJECT.

    Returns None outside GCP, which makes callers skip Secret Manager.
    """
    global _project_id
    if _project_id is None:
        _project_id = os.environ.get("GCP_PROJECT") or os.environ.get(
            "GOOGLE_CLOUD_PROJECT"
        )
    return _project_id


@log_function(mask_result=True)
def get_secret(secret_id: str) -> str:
    """Fetch the latest version of a secret, decoded and whitespace-stripped."""
    project_id = get_project_id()
    if not project_id:
        raise RuntimeError("No GCP project configured for Secret Manager")
    client = _get_sm_client()
    name = f"projects/{project_id}/secrets/{secret_id}/versions/latest"
    response = client.access_secret_version(request={"name": name})
    return response.payload.data.decode("UTF-8").strip()


@log_function(mask_result=True)
def get_openai_api_key() -> str | None:
    """Return the OpenAI API key (env var first, then Secret Manager).

    Secrets injected with --set-secrets land in the environment and can
    carry a trailing newline, hence the strip.
    """
    key = os.environ.get("OPENAI_API_KEY", "").strip()
    if key:
        return key

    secret_id = os.environ.get("OPENAI_SECRET_ID", OPENAI_SECRET_ID)
    try:
        return get_secret(secret_id) or None
    except Exception as e:
        logger.error(f"Failed to fetch OpenAI API key from Secret Manager: {e}")
        return None


def _reset_caches():
    """Reset module-level caches (for testing only)."""
    global _sm_client, _project_id
    _sm_client = None
    _project_id = None

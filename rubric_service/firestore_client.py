"""
Firestore persistence for saved rubrics.

Each user has one document holding their whole saved-rubric list as JSON
text. Every operation reads the list, changes it in memory and writes the
whole list back; there are no partial updates.
"""
import json
import logging
from datetime import datetime, timezone
from typing import List, Optional

from google.cloud import firestore

from .config import load_settings
from .logging_utils import log_function
from .rubric_agent.errors import SchemaError
from .rubric_agent.form_models import FormContext
from .rubric_agent.rubric import Rubric, SavedRubric

logger = logging.getLogger(__name__)

MAX_SAVED_RUBRICS = 10
STATE_COLLECTION = "state"
SAVED_RUBRICS_DOC = "saved_rubrics"

# Module-level cached client
_db: firestore.Client | None = None


@log_function
def get_firestore_client():
    """Returns cached Firestore client (uses default credentials in Cloud Functions)."""
    global _db
    if _db is None:
        _db = firestore.Client(database=load_settings().firestore_database)
    return _db


def _reset_client():
    """Reset the cached client (for testing only)."""
    global _db
    _db = None


def _saved_ref(owner: str):
    db = get_firestore_client()
    return (
        db.collection('users').document(owner)
        .collection(STATE_COLLECTION).document(SAVED_RUBRICS_DOC)
    )


def push_bounded(
    saved: List[SavedRubric], entry: SavedRubric, limit: int = MAX_SAVED_RUBRICS
) -> List[SavedRubric]:
    """Newest first; anything past ``limit`` (the oldest) is dropped."""
    return [entry, *saved][:limit]


def _new_id(saved: List[SavedRubric], now: datetime) -> str:
    """Creation time in milliseconds, bumped past any id already in use."""
    candidate = int(now.timestamp() * 1000)
    taken = {s.id for s in saved}
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)


def _write(owner: str, saved: List[SavedRubric]) -> None:
    _saved_ref(owner).set({
        'rubrics': json.dumps([s.to_dict() for s in saved], ensure_ascii=False),
        'updatedAt': firestore.SERVER_TIMESTAMP,
    })


@log_function
def get_saved_rubrics(owner: str) -> List[SavedRubric]:
    """
    Read a user's saved rubrics, newest first.

    A missing document is an empty list. Unreadable data is logged and
    also read as an empty list, so one bad write cannot lock a user out
    of saving again.
    """
    doc = _saved_ref(owner).get()
    if not doc.exists:
        return []

    raw = (doc.to_dict() or {}).get('rubrics')
    if not raw:
        return []

    try:
        return [SavedRubric.from_dict(entry) for entry in json.loads(raw)]
    except (ValueError, KeyError, TypeError, SchemaError) as e:
        logger.error(f"Discarding unreadable saved rubrics for {owner}: {e}")
        return []


@log_function
def save_rubric(
    owner: str,
    rubric: Rubric,
    form_data: FormContext,
    *,
    now: Optional[datetime] = None,
    limit: int = MAX_SAVED_RUBRICS,
) -> SavedRubric:
    """
    Add a rubric to the front of the user's list.

    Args:
        owner: Storage key of the user (Firebase uid)
        rubric: The generated or edited rubric
        form_data: Form state the rubric was produced from
        now: Creation time (defaults to the current UTC time)
        limit: Maximum entries kept; the oldest are evicted

    Returns:
        The stored SavedRubric entry
    """
    now = now or datetime.now(timezone.utc)
    saved = get_saved_rubrics(owner)
    entry = SavedRubric(
        id=_new_id(saved, now),
        rubric=rubric,
        form_data=form_data,
        created_at=now.isoformat(),
        title=rubric.title,
    )
    _write(owner, push_bounded(saved, entry, limit))
    return entry


@log_function
def delete_rubric(owner: str, rubric_id: str) -> bool:
    """Remove one entry. Returns False if no entry had that id."""
    saved = get_saved_rubrics(owner)
    remaining = [s for s in saved if s.id != rubric_id]
    if len(remaining) == len(saved):
        return False
    _write(owner, remaining)
    return True


@log_function
def load_rubric(owner: str, rubric_id: str) -> Optional[SavedRubric]:
    return next((s for s in get_saved_rubrics(owner) if s.id == rubric_id), None)

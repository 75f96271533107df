"""
Challenge lifecycle: create, update, join, delete.

Challenge images resolve through: the URL the creator supplied, then a
photo search over "title category hint", then a placeholder image labelled
with the title. The `data_ai_hint` keyword is always at most two words.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from badges import CHALLENGE_STARTER, award_badge
from database import CHALLENGES, from_doc, insert, now_iso
from errors import NotFoundError, PermissionDeniedError
from image_search import placeholder_image, search_photo
from notifications import add_notification
from schemas import Challenge, ChallengeCreate, ChallengeUpdate, NotificationCreate
from users import get_user_profile

logger = logging.getLogger(__name__)

DEFAULT_HINT = "challenge image"

PhotoSearch = Callable[[str], Optional[str]]


def trim_hint(hint: str) -> str:
    return " ".join(hint.split()[:2])


def derive_hint(hint: Optional[str], category: Optional[str]) -> str:
    return trim_hint(hint or (category or "").lower() or DEFAULT_HINT)


def resolve_image(
    title: Optional[str],
    category: Optional[str],
    hint: str,
    search: PhotoSearch,
) -> str:
    if not title:
        return placeholder_image("Challenge")

    query = " ".join(part for part in (title, category, hint) if part).strip()
    try:
        url = search(query) if query else None
    except Exception as e:
        logger.error(f"Photo search failed for {query!r}, using placeholder: {e}")
        url = None
    return url or placeholder_image(title)


# ---------- Reads ----------

def get_challenges(db: Database) -> List[Challenge]:
    cursor = db[CHALLENGES].find().sort("start_date", DESCENDING)
    return [Challenge(**from_doc(doc)) for doc in cursor]


def get_challenge_by_id(db: Database, challenge_id: str) -> Optional[Challenge]:
    if not challenge_id:
        return None
    doc = db[CHALLENGES].find_one({"_id": challenge_id})
    return Challenge(**from_doc(doc)) if doc else None


def _get_owned(db: Database, user_id: str, challenge_id: str) -> Dict[str, Any]:
    doc = db[CHALLENGES].find_one({"_id": challenge_id})
    if doc is None:
        raise NotFoundError("Challenge not found.")
    if doc.get("creator_id") != user_id:
        raise PermissionDeniedError("User is not authorized to modify this challenge.")
    return doc


# ---------- Writes ----------

def add_challenge(
    db: Database,
    user_id: str,
    data: ChallengeCreate,
    search: Optional[PhotoSearch] = None,
) -> Challenge:
    search = search or search_photo
    hint = derive_hint(data.data_ai_hint, data.category)
    image_url = data.image_url or resolve_image(data.title, data.category, hint, search)

    now = now_iso()
    record = insert(
        db,
        CHALLENGES,
        {
            **data.model_dump(),
            "image_url": image_url,
            "data_ai_hint": hint,
            "creator_id": user_id,
            "participant_ids": [user_id],  # creator joins automatically
            "leaderboard_preview": [],
            "created_at": now,
            "last_updated_at": now,
        },
    )
    award_badge(db, user_id, CHALLENGE_STARTER)
    return Challenge(**record)


def update_challenge(
    db: Database,
    user_id: str,
    challenge_id: str,
    data: ChallengeUpdate,
    search: Optional[PhotoSearch] = None,
) -> Challenge:
    search = search or search_photo
    existing = _get_owned(db, user_id, challenge_id)

    changes = data.model_dump(exclude_unset=True)
    image_sent = "image_url" in changes
    image_url = changes.pop("image_url", None)
    changes = {k: v for k, v in changes.items() if v is not None}

    title = changes.get("title") or existing.get("title")
    category = changes.get("category") or existing.get("category")

    if (image_sent and not image_url) or (not image_sent and not existing.get("image_url")):
        hint = derive_hint(changes.get("data_ai_hint") or existing.get("data_ai_hint"), category)
        changes["image_url"] = resolve_image(title, category, hint, search)
        changes["data_ai_hint"] = hint
    elif image_url:
        changes["image_url"] = image_url
        changes["data_ai_hint"] = derive_hint(
            changes.get("data_ai_hint") or existing.get("data_ai_hint"), category
        )
    elif "data_ai_hint" in changes:
        changes["data_ai_hint"] = trim_hint(changes["data_ai_hint"]) or DEFAULT_HINT

    changes["last_updated_at"] = now_iso()
    doc = db[CHALLENGES].find_one_and_update(
        {"_id": challenge_id},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFoundError("Challenge not found.")
    return Challenge(**from_doc(doc))


def join_challenge(db: Database, challenge_id: str, user_id: str) -> Challenge:
    if not user_id:
        raise ValueError("user_id is required to join a challenge")
    if not challenge_id:
        raise ValueError("challenge_id is required")

    result = db[CHALLENGES].update_one(
        {"_id": challenge_id, "participant_ids": {"$ne": user_id}},
        {"$addToSet": {"participant_ids": user_id}, "$set": {"last_updated_at": now_iso()}},
    )
    doc = db[CHALLENGES].find_one({"_id": challenge_id})
    if doc is None:
        raise NotFoundError("Challenge not found.")
    challenge = Challenge(**from_doc(doc))

    # modified only when the user was not a participant yet
    if result.modified_count:
        award_badge(db, user_id, CHALLENGE_STARTER)
        if challenge.creator_id != user_id:
            profile = get_user_profile(db, user_id)
            name = profile.name if profile else "Someone"
            add_notification(
                db,
                challenge.creator_id,
                NotificationCreate(
                    message=f'{name} joined your challenge "{challenge.title}".',
                    type="info",
                    link=f"/challenges/{challenge.id}",
                    related_entity_id=challenge.id,
                ),
            )
    return challenge


def delete_challenge(db: Database, user_id: str, challenge_id: str) -> None:
    _get_owned(db, user_id, challenge_id)
    db[CHALLENGES].delete_one({"_id": challenge_id})

import logging
from typing import Any, Dict, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from database import USERS, from_doc, now_iso
from errors import NotFoundError
from schemas import UserProfile, UserProfileCreate, UserProfileUpdate

logger = logging.getLogger(__name__)

DEFAULT_NAME = "New User"
DEFAULT_AVATAR_URL = "https://placehold.co/100x100.png"
DEFAULT_TIMEZONE = "UTC"


def create_user_profile(
    db: Database,
    user_id: str,
    data: Optional[UserProfileCreate] = None,
) -> UserProfile:
    """
    Create the profile document for a freshly authenticated user.

    Idempotent: if the profile already exists it is returned untouched.
    """
    existing = get_user_profile(db, user_id)
    if existing is not None:
        return existing

    data = data or UserProfileCreate()
    now = now_iso()
    doc = {
        "_id": user_id,
        "name": data.name or DEFAULT_NAME,
        "email": data.email or "",
        "avatar_url": data.avatar_url or DEFAULT_AVATAR_URL,
        "timezone": data.timezone or DEFAULT_TIMEZONE,
        "preferences": (data.preferences.model_dump() if data.preferences else {}),
        "earned_badge_ids": [],
        "badge_awarded_at": {},
        "created_at": now,
        "last_updated_at": now,
    }
    db[USERS].insert_one(doc)
    logger.info("Created profile for user %s", user_id)
    return UserProfile(**from_doc(doc))


def get_user_profile(db: Database, user_id: str) -> Optional[UserProfile]:
    if not user_id:
        logger.warning("get_user_profile called with no user_id")
        return None
    doc = db[USERS].find_one({"_id": user_id})
    return UserProfile(**from_doc(doc)) if doc else None


def update_user_profile(db: Database, user_id: str, data: UserProfileUpdate) -> UserProfile:
    # unset and None keys never overwrite stored values
    changes: Dict[str, Any] = {
        k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None
    }
    changes["last_updated_at"] = now_iso()

    doc = db[USERS].find_one_and_update(
        {"_id": user_id},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFoundError(f"User profile {user_id} not found")
    return UserProfile(**from_doc(doc))

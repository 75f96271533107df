"""
MongoDB access for HabitAI.

Collections: users, habits, challenges, posts, comments, notifications.
Every document uses a uuid4 hex string as `_id`; the data-access modules
take the `Database` handle as their first argument so the API (and tests)
decide which database they talk to.
"""
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from pymongo import MongoClient
from pymongo.database import Database

from config import get_settings

USERS = "users"
HABITS = "habits"
CHALLENGES = "challenges"
POSTS = "posts"
COMMENTS = "comments"
NOTIFICATIONS = "notifications"


@lru_cache
def get_client() -> MongoClient:
    settings = get_settings()
    return MongoClient(settings.mongo_url, tz_aware=True)


def get_db() -> Database:
    """FastAPI dependency: the configured application database."""
    return get_client()[get_settings().mongo_db_name]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


def from_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Turn a stored document into a record dict (`_id` -> `id`)."""
    if doc is None:
        return None
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    return data


def insert(db: Database, collection: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Insert `payload` under a fresh id and return it as a record dict."""
    doc = {"_id": new_id(), **payload}
    db[collection].insert_one(doc)
    return from_doc(doc)

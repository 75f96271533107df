from typing import List

from pymongo import DESCENDING
from pymongo.database import Database

from database import NOTIFICATIONS, from_doc, insert, now_iso
from schemas import Notification, NotificationCreate


def get_notifications(db: Database, user_id: str, count: int = 10) -> List[Notification]:
    if not user_id:
        return []
    cursor = (
        db[NOTIFICATIONS]
        .find({"user_id": user_id})
        .sort("created_at", DESCENDING)
        .limit(count)
    )
    return [Notification(**from_doc(doc)) for doc in cursor]


def count_unread(db: Database, user_id: str) -> int:
    return db[NOTIFICATIONS].count_documents({"user_id": user_id, "read": False})


def add_notification(db: Database, user_id: str, data: NotificationCreate) -> Notification:
    if not user_id:
        raise ValueError("user_id is required to add a notification")
    record = insert(
        db,
        NOTIFICATIONS,
        {
            **data.model_dump(),
            "user_id": user_id,
            "read": False,
            "created_at": now_iso(),
        },
    )
    return Notification(**record)


def mark_notification_as_read(db: Database, user_id: str, notification_id: str) -> bool:
    """Returns False when the notification does not exist for this user."""
    if not user_id or not notification_id:
        return False
    result = db[NOTIFICATIONS].update_one(
        {"_id": notification_id, "user_id": user_id},
        {"$set": {"read": True}},
    )
    return result.matched_count > 0


def mark_all_notifications_as_read(db: Database, user_id: str) -> int:
    if not user_id:
        return 0
    result = db[NOTIFICATIONS].update_many(
        {"user_id": user_id, "read": False},
        {"$set": {"read": True}},
    )
    return result.modified_count

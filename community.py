"""
Community feed: posts, likes and comments.

`likes` is maintained with $addToSet / $pull and `comments_count` with $inc
next to the comment insert/delete. The two writes are not transactional.
"""
import logging
from typing import List, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from badges import FIRST_POST, award_badge
from database import COMMENTS, POSTS, from_doc, insert, now_iso
from errors import NotFoundError, PermissionDeniedError
from notifications import add_notification
from schemas import Comment, CommunityPost, NotificationCreate, PostCreate, UserProfile
from users import get_user_profile

logger = logging.getLogger(__name__)


def _require_profile(db: Database, user_id: str) -> UserProfile:
    profile = get_user_profile(db, user_id)
    if profile is None:
        raise NotFoundError("User profile not found")
    return profile


# ---------- Posts ----------

def get_community_posts(db: Database, count: int = 10) -> List[CommunityPost]:
    cursor = db[POSTS].find().sort("created_at", DESCENDING).limit(count)
    return [CommunityPost(**from_doc(doc)) for doc in cursor]


def get_post(db: Database, post_id: str) -> Optional[CommunityPost]:
    doc = db[POSTS].find_one({"_id": post_id})
    return CommunityPost(**from_doc(doc)) if doc else None


def add_community_post(db: Database, user_id: str, data: PostCreate) -> CommunityPost:
    profile = _require_profile(db, user_id)
    record = insert(
        db,
        POSTS,
        {
            **data.model_dump(),
            "user_id": user_id,
            "user_name": profile.name,
            "user_avatar_url": profile.avatar_url or "",
            "likes": [],
            "comments_count": 0,
            "created_at": now_iso(),
        },
    )
    award_badge(db, user_id, FIRST_POST)
    return CommunityPost(**record)


def like_post(db: Database, post_id: str, user_id: str) -> Optional[CommunityPost]:
    """Toggle `user_id` in the post's likes. None when the post is gone."""
    doc = db[POSTS].find_one({"_id": post_id})
    if doc is None:
        return None

    liked = user_id in doc.get("likes", [])
    op = "$pull" if liked else "$addToSet"
    updated = db[POSTS].find_one_and_update(
        {"_id": post_id},
        {op: {"likes": user_id}, "$set": {"last_updated_at": now_iso()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        return None
    post = CommunityPost(**from_doc(updated))

    if not liked and post.user_id != user_id:
        profile = get_user_profile(db, user_id)
        name = profile.name if profile else "Someone"
        add_notification(
            db,
            post.user_id,
            NotificationCreate(
                message=f"{name} liked your post.",
                type="info",
                link="/community",
                related_entity_id=post.id,
            ),
        )
    return post


def delete_post(db: Database, user_id: str, post_id: str) -> None:
    doc = db[POSTS].find_one({"_id": post_id})
    if doc is None:
        raise NotFoundError("Post not found")
    if doc.get("user_id") != user_id:
        raise PermissionDeniedError("User is not authorized to delete this post.")
    db[POSTS].delete_one({"_id": post_id})
    removed = db[COMMENTS].delete_many({"post_id": post_id}).deleted_count
    logger.info("Deleted post %s and %d comments", post_id, removed)


# ---------- Comments ----------

def add_comment(db: Database, post_id: str, user_id: str, content: str) -> Comment:
    profile = _require_profile(db, user_id)
    post = get_post(db, post_id)
    if post is None:
        raise NotFoundError("Post not found")

    now = now_iso()
    record = insert(
        db,
        COMMENTS,
        {
            "post_id": post_id,
            "user_id": user_id,
            "user_name": profile.name,
            "user_avatar_url": profile.avatar_url or "",
            "content": content,
            "created_at": now,
        },
    )
    db[POSTS].update_one(
        {"_id": post_id},
        {"$inc": {"comments_count": 1}, "$set": {"last_updated_at": now}},
    )

    if post.user_id != user_id:
        add_notification(
            db,
            post.user_id,
            NotificationCreate(
                message=f"{profile.name} commented on your post.",
                type="info",
                link="/community",
                related_entity_id=post_id,
            ),
        )
    return Comment(**record)


def get_comments_for_post(db: Database, post_id: str) -> List[Comment]:
    cursor = db[COMMENTS].find({"post_id": post_id}).sort("created_at", ASCENDING)
    return [Comment(**from_doc(doc)) for doc in cursor]


def delete_comment(db: Database, user_id: str, post_id: str, comment_id: str) -> None:
    """The comment's author or the post's author may delete it."""
    comment = db[COMMENTS].find_one({"_id": comment_id, "post_id": post_id})
    if comment is None:
        raise NotFoundError("Comment not found")

    post = db[POSTS].find_one({"_id": post_id}) or {}
    if user_id not in (comment.get("user_id"), post.get("user_id")):
        raise PermissionDeniedError("User is not authorized to delete this comment.")

    db[COMMENTS].delete_one({"_id": comment_id})
    db[POSTS].update_one(
        {"_id": post_id},
        {"$inc": {"comments_count": -1}, "$set": {"last_updated_at": now_iso()}},
    )

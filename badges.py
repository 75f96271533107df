"""
Badge catalogue and awards.

Badges are static definitions; a user's earned badges live on the profile
document as `earned_badge_ids` plus a `badge_awarded_at` map.
"""
import logging
from typing import Dict, List

from pymongo.database import Database

from database import USERS, now_iso
from errors import NotFoundError
from notifications import add_notification
from schemas import Badge, NotificationCreate
from users import get_user_profile

logger = logging.getLogger(__name__)

SEVEN_DAY_STREAK = "badge1"
EARLY_BIRD = "badge2"
PERFECT_WEEK = "badge3"
HYDRATION_HERO = "badge4"
FIRST_POST = "badge5"
CHALLENGE_STARTER = "badge6"
MONTH_OF_CONSISTENCY = "badge7"
AI_POWERED = "badge8"

BADGES: List[Badge] = [
    Badge(id=SEVEN_DAY_STREAK, name="7-Day Streak",
          description="Completed a habit for 7 days in a row.", icon="Award"),
    Badge(id=EARLY_BIRD, name="Early Bird",
          description="Completed a morning habit 5 times.", icon="Sunrise"),
    Badge(id=PERFECT_WEEK, name="Perfect Week",
          description="Completed all daily habits for a week.", icon="CheckCircle2"),
    Badge(id=HYDRATION_HERO, name="Hydration Hero",
          description="Drank 8 glasses of water daily for 5 days.", icon="CupSoda"),
    Badge(id=FIRST_POST, name="First Post",
          description="Shared your first post in the community.", icon="Send"),
    Badge(id=CHALLENGE_STARTER, name="Challenge Starter",
          description="Joined your first challenge.", icon="Trophy"),
    Badge(id=MONTH_OF_CONSISTENCY, name="Month of Consistency",
          description="Maintained a daily habit for 30 days.", icon="CalendarCheck"),
    Badge(id=AI_POWERED, name="AI Powered",
          description="Used an AI suggestion to complete a task.", icon="Wand2"),
]

BADGES_BY_ID: Dict[str, Badge] = {badge.id: badge for badge in BADGES}

# streak length -> badge
STREAK_BADGES = [(7, SEVEN_DAY_STREAK), (30, MONTH_OF_CONSISTENCY)]


def get_user_badges(db: Database, user_id: str) -> List[Badge]:
    profile = get_user_profile(db, user_id)
    if profile is None or not profile.earned_badge_ids:
        return []

    fallback = profile.last_updated_at or profile.created_at
    badges = []
    for badge_id in profile.earned_badge_ids:
        definition = BADGES_BY_ID.get(badge_id)
        if definition is None:
            continue
        earned_at = profile.badge_awarded_at.get(badge_id, fallback)
        badges.append(definition.model_copy(update={"earned_at": earned_at}))
    return badges


def award_badge(db: Database, user_id: str, badge_id: str) -> bool:
    """
    Add `badge_id` to the user's earned badges.

    Returns True when the badge is newly earned; only then is a milestone
    notification created. Users without a profile are skipped.
    """
    badge = BADGES_BY_ID.get(badge_id)
    if badge is None:
        raise NotFoundError(f"Unknown badge {badge_id}")

    now = now_iso()
    result = db[USERS].update_one(
        {"_id": user_id, "earned_badge_ids": {"$ne": badge_id}},
        {
            "$addToSet": {"earned_badge_ids": badge_id},
            "$set": {f"badge_awarded_at.{badge_id}": now, "last_updated_at": now},
        },
    )
    if result.modified_count == 0:
        return False

    logger.info("User %s earned badge %s", user_id, badge_id)
    add_notification(
        db,
        user_id,
        NotificationCreate(
            message=f'Congratulations! You\'ve earned the "{badge.name}" badge!',
            type="milestone",
            link="/profile?tab=badges",
            related_entity_id=badge_id,
        ),
    )
    return True


def award_streak_badges(db: Database, user_id: str, streak: int) -> List[str]:
    return [
        badge_id
        for threshold, badge_id in STREAK_BADGES
        if streak >= threshold and award_badge(db, user_id, badge_id)
    ]

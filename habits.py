"""
Habits: CRUD, the daily progress / streak update, and dashboard stats.

A habit carries an append-only list of `{date, completed}` entries keyed by
day (first 10 chars of the ISO date) and a `streak` counter that is bumped
up or down on each write. The streak is not recomputed from history.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from badges import AI_POWERED, award_badge, award_streak_badges
from database import HABITS, from_doc, insert, now_iso
from errors import NotFoundError
from schemas import (
    FocusItem,
    Habit,
    HabitCompletionRate,
    HabitCreate,
    HabitStats,
    HabitUpdate,
    ProgressEntry,
)

logger = logging.getLogger(__name__)

FOCUS_LIMIT = 5


# ---------- CRUD ----------

def get_user_habits(db: Database, user_id: str) -> List[Habit]:
    if not user_id:
        return []
    cursor = db[HABITS].find({"user_id": user_id}).sort("created_at", DESCENDING)
    return [Habit(**from_doc(doc)) for doc in cursor]


def get_habit_by_id(db: Database, user_id: str, habit_id: str) -> Optional[Habit]:
    if not user_id or not habit_id:
        return None
    doc = db[HABITS].find_one({"_id": habit_id, "user_id": user_id})
    return Habit(**from_doc(doc)) if doc else None


def add_habit(db: Database, user_id: str, data: HabitCreate) -> Habit:
    now = now_iso()
    record = insert(
        db,
        HABITS,
        {
            **data.model_dump(),
            "user_id": user_id,
            "progress": [],
            "streak": 0,
            "created_at": now,
            "last_updated_at": now,
        },
    )
    return Habit(**record)


def update_habit(db: Database, user_id: str, habit_id: str, data: HabitUpdate) -> Habit:
    # unset and None keys never overwrite stored values
    changes = {
        k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None
    }
    changes["last_updated_at"] = now_iso()
    doc = db[HABITS].find_one_and_update(
        {"_id": habit_id, "user_id": user_id},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise NotFoundError(f"Habit {habit_id} not found")
    return Habit(**from_doc(doc))


def delete_habit(db: Database, user_id: str, habit_id: str) -> None:
    if not user_id or not habit_id:
        raise ValueError("user_id and habit_id are required")
    result = db[HABITS].delete_one({"_id": habit_id, "user_id": user_id})
    if result.deleted_count == 0:
        raise NotFoundError(f"Habit {habit_id} not found")


# ---------- Progress / streak ----------

def day_key(value: str) -> str:
    return value[:10]


def _entry_time(value: str) -> Tuple[datetime, str]:
    """Sort key for a progress date: the parsed instant (naive counts as UTC), then the raw string."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = datetime.fromisoformat(day_key(value))
        except ValueError:
            parsed = datetime.min
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed, value


def apply_progress(
    progress: List[Dict[str, Any]],
    streak: int,
    date_iso: str,
    completed: bool,
) -> Tuple[List[Dict[str, Any]], int]:
    """
    Record `completed` for the day of `date_iso`.

    - Existing entry with a different value: replace it, streak +1 when now
      completed, -1 (floored at 0) when un-completed.
    - Existing entry with the same value: nothing changes.
    - No entry for that day: append it, streak +1 when completed.

    Returns a new progress list sorted by date and the new streak.
    """
    progress = [dict(entry) for entry in progress]
    streak = max(int(streak or 0), 0)
    key = day_key(date_iso)

    index = next(
        (i for i, entry in enumerate(progress) if day_key(entry["date"]) == key),
        None,
    )

    if index is not None:
        if progress[index]["completed"] != completed:
            progress[index] = {"date": date_iso, "completed": completed}
            if completed:
                streak += 1
            elif streak > 0:
                streak -= 1
    else:
        progress.append({"date": date_iso, "completed": completed})
        if completed:
            streak += 1

    progress.sort(key=lambda entry: _entry_time(entry["date"]))
    return progress, streak


def update_habit_progress(
    db: Database,
    user_id: str,
    habit_id: str,
    date_iso: str,
    completed: bool,
) -> Habit:
    doc = db[HABITS].find_one({"_id": habit_id, "user_id": user_id})
    if doc is None:
        raise NotFoundError(f"Habit {habit_id} not found")

    progress, streak = apply_progress(
        doc.get("progress", []), doc.get("streak", 0), date_iso, completed
    )
    fields = {"progress": progress, "streak": streak, "last_updated_at": now_iso()}
    db[HABITS].update_one({"_id": habit_id}, {"$set": fields})

    habit = Habit(**from_doc({**doc, **fields}))

    if completed:
        award_streak_badges(db, user_id, habit.streak)
        if habit.ai_suggested_task:
            award_badge(db, user_id, AI_POWERED)

    logger.debug("Habit %s progress %s=%s streak=%d", habit_id, day_key(date_iso), completed, streak)
    return habit


# ---------- Dashboard stats ----------

def is_completed_on(habit: Habit, day: date) -> bool:
    key = day.isoformat()
    return any(entry.completed for entry in habit.progress if day_key(entry.date) == key)


def completion_rate(habit: Habit) -> float:
    if not habit.progress:
        return 0.0
    done = sum(1 for entry in habit.progress if entry.completed)
    return round(done / len(habit.progress) * 100, 1)


def weekly_completion_rates(habits: List[Habit], today: date, weeks: int = 4) -> List[float]:
    """
    Completion % of recorded entries per 7-day window, oldest window first;
    the last window ends on `today`. Windows without entries score 0.
    """
    rates = []
    for i in range(weeks):
        end = today - timedelta(days=7 * (weeks - 1 - i))
        start = end - timedelta(days=6)
        entries: List[ProgressEntry] = [
            entry
            for habit in habits
            for entry in habit.progress
            if start.isoformat() <= day_key(entry.date) <= end.isoformat()
        ]
        if not entries:
            rates.append(0.0)
            continue
        done = sum(1 for entry in entries if entry.completed)
        rates.append(round(done / len(entries) * 100, 1))
    return rates


def todays_focus(habits: List[Habit], today: date, limit: int = FOCUS_LIMIT) -> List[FocusItem]:
    """Habits not yet done today, or carrying an AI-suggested task."""
    items = [
        FocusItem(habit_id=h.id, title=h.title, ai_suggested_task=h.ai_suggested_task)
        for h in habits
        if not is_completed_on(h, today) or h.ai_suggested_task
    ]
    return items[:limit]


def summarize_habits(habits: List[Habit], today: date) -> HabitStats:
    return HabitStats(
        total_habits=len(habits),
        longest_streak=max([0] + [h.streak for h in habits]),
        active_streaks=sum(1 for h in habits if h.streak > 0),
        completion_rates=[
            HabitCompletionRate(
                habit_id=h.id,
                title=h.title,
                streak=h.streak,
                completion_rate=completion_rate(h),
            )
            for h in habits
        ],
        weekly_completion_rates=weekly_completion_rates(habits, today),
        todays_focus=todays_focus(habits, today),
    )

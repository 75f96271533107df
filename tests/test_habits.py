from datetime import date

import pytest

from badges import AI_POWERED, MONTH_OF_CONSISTENCY, SEVEN_DAY_STREAK
from errors import NotFoundError
from habits import (
    add_habit,
    apply_progress,
    completion_rate,
    delete_habit,
    get_habit_by_id,
    get_user_habits,
    is_completed_on,
    summarize_habits,
    todays_focus,
    update_habit,
    update_habit_progress,
    weekly_completion_rates,
)
from notifications import get_notifications
from schemas import Habit, HabitCreate, HabitUpdate, ProgressEntry
from users import get_user_profile


def _habit(habit_id="h1", title="Read", streak=0, entries=(), ai_task=None):
    return Habit(
        id=habit_id,
        user_id="u1",
        title=title,
        streak=streak,
        progress=[ProgressEntry(date=d, completed=c) for d, c in entries],
        ai_suggested_task=ai_task,
        created_at="2024-01-01T00:00:00+00:00",
    )


# ---------- apply_progress ----------

class TestApplyProgress:
    def test_new_completed_day_increments_streak(self):
        progress, streak = apply_progress([], 0, "2024-05-01", True)
        assert progress == [{"date": "2024-05-01", "completed": True}]
        assert streak == 1

    def test_new_missed_day_keeps_streak(self):
        progress, streak = apply_progress([], 3, "2024-05-01", False)
        assert progress == [{"date": "2024-05-01", "completed": False}]
        assert streak == 3

    def test_flip_to_completed_increments(self):
        existing = [{"date": "2024-05-01", "completed": False}]
        progress, streak = apply_progress(existing, 2, "2024-05-01T18:30:00+00:00", True)
        assert progress == [{"date": "2024-05-01T18:30:00+00:00", "completed": True}]
        assert streak == 3

    def test_flip_to_not_completed_decrements(self):
        existing = [{"date": "2024-05-01", "completed": True}]
        _, streak = apply_progress(existing, 2, "2024-05-01", False)
        assert streak == 1

    def test_decrement_never_goes_below_zero(self):
        existing = [{"date": "2024-05-01", "completed": True}]
        _, streak = apply_progress(existing, 0, "2024-05-01", False)
        assert streak == 0

    def test_same_value_is_a_no_op(self):
        existing = [{"date": "2024-05-01T07:00:00+00:00", "completed": True}]
        progress, streak = apply_progress(existing, 4, "2024-05-01T21:00:00+00:00", True)
        assert progress == existing
        assert streak == 4

    def test_day_key_matches_on_date_prefix_only(self):
        existing = [{"date": "2024-05-01T23:59:00+00:00", "completed": True}]
        progress, streak = apply_progress(existing, 1, "2024-05-02", True)
        assert len(progress) == 2
        assert streak == 2

    def test_progress_kept_sorted_by_date(self):
        existing = [
            {"date": "2024-05-03", "completed": True},
            {"date": "2024-05-01", "completed": True},
        ]
        progress, _ = apply_progress(existing, 2, "2024-05-02", True)
        assert [p["date"] for p in progress] == ["2024-05-01", "2024-05-02", "2024-05-03"]

    def test_input_list_is_not_mutated(self):
        existing = [{"date": "2024-05-01", "completed": False}]
        apply_progress(existing, 0, "2024-05-01", True)
        assert existing == [{"date": "2024-05-01", "completed": False}]

    def test_mixed_offsets_sort_by_instant(self):
        # 23:00 at -05:00 is 04:00 UTC the next day, after 01:00 UTC
        existing = [{"date": "2024-05-01T23:00:00-05:00", "completed": True}]
        progress, _ = apply_progress(existing, 1, "2024-05-02T01:00:00+00:00", True)
        assert [p["date"] for p in progress] == [
            "2024-05-02T01:00:00+00:00",
            "2024-05-01T23:00:00-05:00",
        ]

    def test_date_only_and_zulu_entries_sort_together(self):
        existing = [{"date": "2024-05-03", "completed": True}]
        progress, _ = apply_progress(existing, 1, "2024-05-02T09:00:00Z", True)
        assert [p["date"] for p in progress] == ["2024-05-02T09:00:00Z", "2024-05-03"]


# ---------- persistence ----------

def test_add_habit_starts_empty(db):
    habit = add_habit(db, "u1", HabitCreate(title="Meditate", frequency="daily"))
    assert habit.progress == []
    assert habit.streak == 0
    assert habit.user_id == "u1"
    assert get_habit_by_id(db, "u1", habit.id) == habit


def test_habits_are_scoped_to_owner(db):
    habit = add_habit(db, "u1", HabitCreate(title="Meditate"))
    add_habit(db, "u2", HabitCreate(title="Run"))

    assert [h.title for h in get_user_habits(db, "u1")] == ["Meditate"]
    assert get_habit_by_id(db, "u2", habit.id) is None
    assert get_user_habits(db, "") == []


def test_update_habit_changes_only_sent_fields(db):
    habit = add_habit(db, "u1", HabitCreate(title="Meditate", description="10 min"))
    updated = update_habit(db, "u1", habit.id, HabitUpdate(title="Meditate daily"))
    assert updated.title == "Meditate daily"
    assert updated.description == "10 min"
    assert updated.last_updated_at is not None


def test_update_habit_ignores_null_fields(db):
    habit = add_habit(db, "u1", HabitCreate(title="Meditate", description="10 min"))
    updated = update_habit(
        db, "u1", habit.id, HabitUpdate(title=None, description=None, color="#0ea5e9")
    )
    assert updated.title == "Meditate"
    assert updated.description == "10 min"
    assert updated.color == "#0ea5e9"
    assert [h.title for h in get_user_habits(db, "u1")] == ["Meditate"]


def test_update_habit_of_other_user_is_not_found(db):
    habit = add_habit(db, "u1", HabitCreate(title="Meditate"))
    with pytest.raises(NotFoundError):
        update_habit(db, "u2", habit.id, HabitUpdate(title="Hijack"))


def test_delete_habit(db):
    habit = add_habit(db, "u1", HabitCreate(title="Meditate"))
    delete_habit(db, "u1", habit.id)
    assert get_habit_by_id(db, "u1", habit.id) is None
    with pytest.raises(NotFoundError):
        delete_habit(db, "u1", habit.id)


def test_update_habit_progress_persists(db):
    habit = add_habit(db, "u1", HabitCreate(title="Meditate"))

    update_habit_progress(db, "u1", habit.id, "2024-05-01", True)
    update_habit_progress(db, "u1", habit.id, "2024-05-02", True)
    result = update_habit_progress(db, "u1", habit.id, "2024-05-02", False)

    assert result.streak == 1
    stored = get_habit_by_id(db, "u1", habit.id)
    assert stored.streak == 1
    assert [(p.date, p.completed) for p in stored.progress] == [
        ("2024-05-01", True),
        ("2024-05-02", False),
    ]


def test_update_habit_progress_missing_habit(db):
    with pytest.raises(NotFoundError):
        update_habit_progress(db, "u1", "nope", "2024-05-01", True)


def test_streak_badges_awarded_once(db, make_user):
    make_user("u1")
    habit = add_habit(db, "u1", HabitCreate(title="Meditate"))

    for day in range(1, 9):
        update_habit_progress(db, "u1", habit.id, f"2024-05-{day:02d}", True)

    profile = get_user_profile(db, "u1")
    assert SEVEN_DAY_STREAK in profile.earned_badge_ids
    assert MONTH_OF_CONSISTENCY not in profile.earned_badge_ids
    milestones = [n for n in get_notifications(db, "u1", 50) if n.type == "milestone"]
    assert len(milestones) == 1


def test_completing_ai_suggested_habit_awards_ai_badge(db, make_user):
    make_user("u1")
    habit = add_habit(
        db, "u1", HabitCreate(title="Read", ai_suggested_task="Read one page tonight.")
    )
    update_habit_progress(db, "u1", habit.id, "2024-05-01", True)
    assert AI_POWERED in get_user_profile(db, "u1").earned_badge_ids


# ---------- dashboard stats ----------

def test_is_completed_on():
    habit = _habit(entries=[("2024-05-01T08:00:00+00:00", True), ("2024-05-02", False)])
    assert is_completed_on(habit, date(2024, 5, 1))
    assert not is_completed_on(habit, date(2024, 5, 2))
    assert not is_completed_on(habit, date(2024, 5, 3))


def test_completion_rate():
    assert completion_rate(_habit()) == 0.0
    habit = _habit(entries=[("2024-05-01", True), ("2024-05-02", False), ("2024-05-03", True)])
    assert completion_rate(habit) == 66.7


def test_weekly_completion_rates_oldest_first():
    today = date(2024, 5, 28)
    habit = _habit(
        entries=[
            ("2024-05-01", True),   # week 1: 2024-05-01 .. 05-07
            ("2024-05-02", False),
            ("2024-05-27", True),   # week 4: 2024-05-22 .. 05-28
            ("2024-05-28", True),
        ]
    )
    assert weekly_completion_rates([habit], today) == [50.0, 0.0, 0.0, 100.0]


def test_todays_focus_lists_unfinished_and_ai_tasks():
    today = date(2024, 5, 1)
    done = _habit("h1", "Done", entries=[("2024-05-01", True)])
    pending = _habit("h2", "Pending")
    done_with_tip = _habit("h3", "Tip", entries=[("2024-05-01", True)], ai_task="Stretch 2 min")

    focus = todays_focus([done, pending, done_with_tip], today)
    assert [f.habit_id for f in focus] == ["h2", "h3"]


def test_todays_focus_is_limited():
    habits = [_habit(f"h{i}", f"H{i}") for i in range(8)]
    assert len(todays_focus(habits, date(2024, 5, 1))) == 5


def test_summarize_habits():
    habits = [
        _habit("h1", "Read", streak=4, entries=[("2024-05-01", True)]),
        _habit("h2", "Run", streak=0),
        _habit("h3", "Write", streak=9),
    ]
    stats = summarize_habits(habits, date(2024, 5, 1))
    assert stats.total_habits == 3
    assert stats.longest_streak == 9
    assert stats.active_streaks == 2
    assert len(stats.weekly_completion_rates) == 4


def test_summarize_no_habits():
    stats = summarize_habits([], date(2024, 5, 1))
    assert stats.longest_streak == 0
    assert stats.weekly_completion_rates == [0.0, 0.0, 0.0, 0.0]

"""
Records and request/response models for HabitAI.

Stored records mirror the MongoDB documents one-to-one (the document `_id`
is exposed as `id`). The *Create / *Update models are the payloads the API
accepts; update models are applied with `exclude_unset=True` so only the
fields a caller actually sent are written.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


# ---------- Users ----------

class UserPreferences(BaseModel):
    preferred_times: List[str] = Field(default_factory=list)
    goal_categories: List[str] = Field(default_factory=list)


class UserProfile(BaseModel):
    id: str
    name: str
    email: str = ""
    avatar_url: Optional[str] = None
    timezone: Optional[str] = None
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    earned_badge_ids: List[str] = Field(default_factory=list)
    badge_awarded_at: Dict[str, str] = Field(default_factory=dict)
    created_at: str
    last_updated_at: Optional[str] = None


class UserProfileCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    timezone: Optional[str] = None
    preferences: Optional[UserPreferences] = None


class UserProfileUpdate(UserProfileCreate):
    pass


# ---------- Habits ----------

class ProgressEntry(BaseModel):
    date: str  # ISO date or datetime; the first 10 chars are the day key
    completed: bool


class Habit(BaseModel):
    id: str
    user_id: str
    title: str
    description: str = ""
    frequency: str = "daily"  # 'daily' | 'weekly' | 'monthly' | custom text
    progress: List[ProgressEntry] = Field(default_factory=list)
    streak: int = 0
    color: Optional[str] = None
    icon: Optional[str] = None
    ai_suggested_task: Optional[str] = None
    created_at: str
    last_updated_at: Optional[str] = None


class HabitCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    frequency: str = "daily"
    color: Optional[str] = None
    icon: Optional[str] = None
    ai_suggested_task: Optional[str] = None


class HabitUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    frequency: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    ai_suggested_task: Optional[str] = None


class ProgressUpdate(BaseModel):
    date: str = Field(..., description="ISO date (YYYY-MM-DD) or full ISO datetime")
    completed: bool

    @field_validator("date")
    @classmethod
    def _starts_with_day(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 10 or not value[:4].isdigit() or value[4] != "-" or value[7] != "-":
            raise ValueError("date must start with YYYY-MM-DD")
        return value


class HabitCompletionRate(BaseModel):
    habit_id: str
    title: str
    streak: int
    completion_rate: float


class FocusItem(BaseModel):
    habit_id: str
    title: str
    ai_suggested_task: Optional[str] = None


class HabitStats(BaseModel):
    total_habits: int = 0
    longest_streak: int = 0
    active_streaks: int = 0
    completion_rates: List[HabitCompletionRate] = Field(default_factory=list)
    weekly_completion_rates: List[float] = Field(default_factory=list)
    todays_focus: List[FocusItem] = Field(default_factory=list)


# ---------- Badges & notifications ----------

class Badge(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    earned_at: Optional[str] = None


NotificationType = Literal["reminder", "milestone", "info"]


class Notification(BaseModel):
    id: str
    user_id: str
    message: str
    type: NotificationType = "info"
    read: bool = False
    link: Optional[str] = None
    related_entity_id: Optional[str] = None
    created_at: str


class NotificationCreate(BaseModel):
    message: str
    type: NotificationType = "info"
    link: Optional[str] = None
    related_entity_id: Optional[str] = None


class Dashboard(BaseModel):
    stats: HabitStats
    badges: List[Badge] = Field(default_factory=list)
    unread_notifications: int = 0


# ---------- Challenges ----------

class LeaderboardEntry(BaseModel):
    user_id: str
    user_name: str
    score: int = 0
    avatar_url: Optional[str] = None


class Challenge(BaseModel):
    id: str
    title: str
    description: str = ""
    category: Optional[str] = None
    start_date: str
    end_date: str
    image_url: str
    data_ai_hint: str = "challenge image"
    creator_id: str
    participant_ids: List[str] = Field(default_factory=list)
    leaderboard_preview: List[LeaderboardEntry] = Field(default_factory=list)
    created_at: str
    last_updated_at: Optional[str] = None


class ChallengeCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    category: Optional[str] = None
    start_date: str
    end_date: str
    image_url: Optional[str] = None
    data_ai_hint: Optional[str] = None


class ChallengeUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    # "" (or explicit null) asks for a fresh image lookup
    image_url: Optional[str] = None
    data_ai_hint: Optional[str] = None


# ---------- Community ----------

class CommunityPost(BaseModel):
    id: str
    user_id: str
    user_name: str
    user_avatar_url: str = ""
    content: str
    habit_id: Optional[str] = None
    image_url: Optional[str] = None
    likes: List[str] = Field(default_factory=list)
    comments_count: int = 0
    created_at: str
    last_updated_at: Optional[str] = None


class PostCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    habit_id: Optional[str] = None
    image_url: Optional[str] = None


class Comment(BaseModel):
    id: str
    post_id: str
    user_id: str
    user_name: str
    user_avatar_url: str = ""
    content: str
    created_at: str


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


# ---------- AI ----------

class MicroTaskRequest(BaseModel):
    goal: str = Field(..., min_length=1)
    times: List[str] = Field(default_factory=list)
    difficulty: Literal["easy", "medium", "challenging"] = "medium"


class MicroTaskSuggestion(BaseModel):
    """Structured output the LLM is asked to fill."""
    micro_task_suggestion: str = Field(
        ...,
        description="One concrete, actionable micro-task for the habit goal.",
    )


class InsightsResult(BaseModel):
    insights: str
    stats: Optional[HabitStats] = None


class InsightsState(BaseModel):
    """State flowing through the insights graph."""
    user_id: Optional[str] = None
    today: Optional[str] = None  # YYYY-MM-DD
    habits: List[Habit] = Field(default_factory=list)
    habits_data: Optional[str] = None
    stats: Optional[HabitStats] = None
    insights: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None
    request_id: Optional[str] = None

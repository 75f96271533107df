"""
HabitAI – API

This module exposes the FastAPI app for HabitAI: profiles, habits and
streaks, badges, notifications, community challenges, the activity feed,
and the two AI helpers (micro-task suggestion, dashboard insights).

Authentication is handled upstream by the identity provider; its gateway
forwards the verified user id in the `X-User-Id` header.

File: api_main.py
"""

import logging
import os
import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from pymongo.database import Database

import challenges
import community
import habits
import notifications
import users
from ai_nodes import suggest_micro_task_node
from badges import get_user_badges
from config import get_settings
from database import get_db
from errors import NotFoundError, PermissionDeniedError
from graph_app import build_insights_graph
from schemas import (
    Badge,
    Challenge,
    ChallengeCreate,
    ChallengeUpdate,
    Comment,
    CommentCreate,
    CommunityPost,
    Dashboard,
    ErrorResponse,
    Habit,
    HabitCreate,
    HabitUpdate,
    InsightsResult,
    InsightsState,
    MicroTaskRequest,
    Notification,
    PostCreate,
    ProgressUpdate,
    UserProfile,
    UserProfileCreate,
    UserProfileUpdate,
)

# --------------------------------------------------------------------
# Logging Setup
# --------------------------------------------------------------------

logger = logging.getLogger("habitai_api")
logger.setLevel(logging.INFO)

if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

# --------------------------------------------------------------------
# Settings
# --------------------------------------------------------------------

settings = get_settings()

insights_graph = build_insights_graph()

# --------------------------------------------------------------------
# API Models (Stable Contracts)
# --------------------------------------------------------------------


class MicroTaskResponse(BaseModel):
    micro_task_suggestion: str
    source: str = "ai"


class InsightsRequest(BaseModel):
    """
    Optional overrides for the insights graph.

    - today: YYYY-MM-DD used for "today's focus" and the weekly windows
      (defaults to the current UTC date).
    """
    today: Optional[date] = None


class MarkReadResponse(BaseModel):
    ok: bool
    updated: int = 0


# --------------------------------------------------------------------
# FastAPI App
# --------------------------------------------------------------------

app = FastAPI(
    title="HabitAI – Habit Tracking API",
    description=(
        "API for HabitAI: habits and streaks, badges, notifications, "
        "community challenges, the activity feed, and AI suggestions/insights."
    ),
    version="1.0.0",
)

# CORS – allow all for now; tighten in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --------------------------------------------------------------------
# Middleware
# --------------------------------------------------------------------


@app.middleware("http")
async def add_request_id_and_log(request: Request, call_next):
    """Attach a request ID to each request and log basic info."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    logger.info(f"[{request_id}] {request.method} {request.url.path}")

    try:
        response = await call_next(request)
    except Exception as exc:  # global safety net
        logger.exception(f"[{request_id}] Unhandled error: {exc}")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal server error",
                details="Unexpected error",
                request_id=request_id,
            ).model_dump(),
        )

    response.headers["X-Request-ID"] = request_id
    return response


# --------------------------------------------------------------------
# Exception Handlers
# --------------------------------------------------------------------


def _error(request: Request, status_code: int, error: str, details=None) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details, request_id=request_id).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    request_id = getattr(request.state, "request_id", None)
    logger.warning(f"[{request_id}] HTTPException {exc.status_code}: {exc.detail}")

    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        content = {**detail, "request_id": request_id}
        return JSONResponse(status_code=exc.status_code, content=content)
    return _error(request, exc.status_code, str(detail))


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    request_id = getattr(request.state, "request_id", None)
    logger.warning(f"[{request_id}] ValidationError: {exc.errors()}")
    return _error(request, 422, "Validation error", exc.errors(include_url=False, include_context=False))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    request_id = getattr(request.state, "request_id", None)
    logger.warning(f"[{request_id}] Invalid request: {exc.errors()}")
    errors = [{k: v for k, v in err.items() if k not in ("ctx", "url")} for err in exc.errors()]
    return _error(request, 422, "Validation error", errors)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    request_id = getattr(request.state, "request_id", None)
    logger.info(f"[{request_id}] Not found: {exc}")
    return _error(request, 404, str(exc))


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    request_id = getattr(request.state, "request_id", None)
    logger.warning(f"[{request_id}] Permission denied: {exc}")
    return _error(request, 403, str(exc))


# --------------------------------------------------------------------
# Utility Helpers
# --------------------------------------------------------------------


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity, as verified and forwarded by the identity provider."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id.strip()


def require_openai_key():
    """Raise a clean error if OPENAI_API_KEY is not configured."""
    if not getattr(settings, "openai_api_key", None):
        raise HTTPException(
            status_code=500,
            detail={
                "error": "OPENAI_API_KEY not configured",
                "details": "Set OPENAI_API_KEY in .env before using the AI helpers.",
            },
        )


def _today_utc():
    return datetime.now(timezone.utc).date()


# --------------------------------------------------------------------
# Basic & Health
# --------------------------------------------------------------------


@app.get("/", tags=["meta"])
def root():
    return {
        "message": "HabitAI API is running.",
        "docs_url": "/docs",
        "environment": settings.env,
        "debug": settings.debug,
    }


@app.get("/health", tags=["meta"])
def health_check(db: Database = Depends(get_db)):
    try:
        db.command("ping")
        database_ok = True
    except Exception as e:
        logger.warning(f"Database ping failed: {e}")
        database_ok = False

    return {
        "status": "ok" if database_ok else "degraded",
        "database": database_ok,
        "openai_key_configured": bool(getattr(settings, "openai_api_key", None)),
        "pexels_key_configured": bool(getattr(settings, "pexels_api_key", None)),
        "environment": settings.env,
    }


# --------------------------------------------------------------------
# Profile & Badges
# --------------------------------------------------------------------


@app.post("/users/me", response_model=UserProfile, tags=["users"])
def create_profile(
    body: Optional[UserProfileCreate] = None,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    """Create the caller's profile on first sign-in; returns the existing one otherwise."""
    return users.create_user_profile(db, user_id, body)


@app.get("/users/me", response_model=UserProfile, tags=["users"])
def read_profile(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    profile = users.get_user_profile(db, user_id)
    if profile is None:
        raise NotFoundError("User profile not found")
    return profile


@app.patch("/users/me", response_model=UserProfile, tags=["users"])
def update_profile(
    body: UserProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return users.update_user_profile(db, user_id, body)


@app.get("/users/me/badges", response_model=List[Badge], tags=["users"])
def read_badges(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    return get_user_badges(db, user_id)


# --------------------------------------------------------------------
# Habits
# --------------------------------------------------------------------


@app.get("/habits", response_model=List[Habit], tags=["habits"])
def list_habits(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    return habits.get_user_habits(db, user_id)


@app.post("/habits", response_model=Habit, status_code=201, tags=["habits"])
def create_habit(
    body: HabitCreate,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return habits.add_habit(db, user_id, body)


@app.get("/habits/{habit_id}", response_model=Habit, tags=["habits"])
def read_habit(
    habit_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    habit = habits.get_habit_by_id(db, user_id, habit_id)
    if habit is None:
        raise NotFoundError("Habit not found")
    return habit


@app.patch("/habits/{habit_id}", response_model=Habit, tags=["habits"])
def edit_habit(
    habit_id: str,
    body: HabitUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return habits.update_habit(db, user_id, habit_id, body)


@app.delete("/habits/{habit_id}", status_code=204, tags=["habits"])
def remove_habit(
    habit_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    habits.delete_habit(db, user_id, habit_id)
    return Response(status_code=204)


@app.post(
    "/habits/{habit_id}/progress",
    response_model=Habit,
    tags=["habits"],
    summary="Mark a day done / not done and update the streak",
)
def record_progress(
    habit_id: str,
    body: ProgressUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    """
    One entry per day (keyed by the YYYY-MM-DD prefix of `date`).

    - new day, completed        -> streak + 1
    - flipped to completed      -> streak + 1
    - flipped to not completed  -> streak - 1 (never below 0)
    - same value as stored      -> no change
    """
    return habits.update_habit_progress(db, user_id, habit_id, body.date, body.completed)


@app.get("/dashboard", response_model=Dashboard, tags=["habits"])
def dashboard(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    user_habits = habits.get_user_habits(db, user_id)
    return Dashboard(
        stats=habits.summarize_habits(user_habits, _today_utc()),
        badges=get_user_badges(db, user_id),
        unread_notifications=notifications.count_unread(db, user_id),
    )


# --------------------------------------------------------------------
# Challenges
# --------------------------------------------------------------------


@app.get("/challenges", response_model=List[Challenge], tags=["challenges"])
def list_challenges(db: Database = Depends(get_db)):
    return challenges.get_challenges(db)


@app.post("/challenges", response_model=Challenge, status_code=201, tags=["challenges"])
def create_challenge(
    body: ChallengeCreate,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    """
    Creator joins automatically. Without an image URL the image comes from
    a photo search on title/category/hint, or a placeholder.
    """
    return challenges.add_challenge(db, user_id, body)


@app.get("/challenges/{challenge_id}", response_model=Challenge, tags=["challenges"])
def read_challenge(challenge_id: str, db: Database = Depends(get_db)):
    challenge = challenges.get_challenge_by_id(db, challenge_id)
    if challenge is None:
        raise NotFoundError("Challenge not found.")
    return challenge


@app.patch("/challenges/{challenge_id}", response_model=Challenge, tags=["challenges"])
def edit_challenge(
    challenge_id: str,
    body: ChallengeUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return challenges.update_challenge(db, user_id, challenge_id, body)


@app.post("/challenges/{challenge_id}/join", response_model=Challenge, tags=["challenges"])
def join(
    challenge_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return challenges.join_challenge(db, challenge_id, user_id)


@app.delete("/challenges/{challenge_id}", status_code=204, tags=["challenges"])
def remove_challenge(
    challenge_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    challenges.delete_challenge(db, user_id, challenge_id)
    return Response(status_code=204)


# --------------------------------------------------------------------
# Community
# --------------------------------------------------------------------


@app.get("/posts", response_model=List[CommunityPost], tags=["community"])
def list_posts(count: int = Query(10, ge=1, le=100), db: Database = Depends(get_db)):
    return community.get_community_posts(db, count)


@app.post("/posts", response_model=CommunityPost, status_code=201, tags=["community"])
def create_post(
    body: PostCreate,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return community.add_community_post(db, user_id, body)


@app.post("/posts/{post_id}/like", response_model=CommunityPost, tags=["community"])
def toggle_like(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    post = community.like_post(db, post_id, user_id)
    if post is None:
        raise NotFoundError("Post not found")
    return post


@app.delete("/posts/{post_id}", status_code=204, tags=["community"])
def remove_post(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    community.delete_post(db, user_id, post_id)
    return Response(status_code=204)


@app.get("/posts/{post_id}/comments", response_model=List[Comment], tags=["community"])
def list_comments(post_id: str, db: Database = Depends(get_db)):
    return community.get_comments_for_post(db, post_id)


@app.post("/posts/{post_id}/comments", response_model=Comment, status_code=201, tags=["community"])
def create_comment(
    post_id: str,
    body: CommentCreate,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return community.add_comment(db, post_id, user_id, body.content)


@app.delete("/posts/{post_id}/comments/{comment_id}", status_code=204, tags=["community"])
def remove_comment(
    post_id: str,
    comment_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    community.delete_comment(db, user_id, post_id, comment_id)
    return Response(status_code=204)


# --------------------------------------------------------------------
# Notifications
# --------------------------------------------------------------------


@app.get("/notifications", response_model=List[Notification], tags=["notifications"])
def list_notifications(
    count: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return notifications.get_notifications(db, user_id, count)


@app.post("/notifications/read-all", response_model=MarkReadResponse, tags=["notifications"])
def read_all_notifications(
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    updated = notifications.mark_all_notifications_as_read(db, user_id)
    return MarkReadResponse(ok=True, updated=updated)


@app.post(
    "/notifications/{notification_id}/read",
    response_model=MarkReadResponse,
    tags=["notifications"],
)
def read_notification(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    if not notifications.mark_notification_as_read(db, user_id, notification_id):
        raise NotFoundError("Notification not found")
    return MarkReadResponse(ok=True, updated=1)


# --------------------------------------------------------------------
# AI helpers
# --------------------------------------------------------------------


@app.post(
    "/ai/micro-task",
    response_model=MicroTaskResponse,
    tags=["ai"],
    summary="Suggest one actionable micro-task for a habit goal",
)
def micro_task(req: MicroTaskRequest, user_id: str = Depends(get_current_user_id)):
    """
    Wraps ai_nodes.suggest_micro_task_node(req). If the LLM fails the node
    returns a deterministic suggestion with source="fallback".
    """
    require_openai_key()

    try:
        result = suggest_micro_task_node(req)
        return MicroTaskResponse(**result)
    except Exception as e:
        logger.exception(f"suggest_micro_task_node failed: {e}")
        raise HTTPException(
            status_code=500,
            detail={"error": "micro-task suggestion failed", "details": str(e)},
        )


@app.post(
    "/ai/insights",
    response_model=InsightsResult,
    tags=["ai"],
    summary="Personalized insights over the caller's habits",
)
def insights(
    req: Optional[InsightsRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    """Runs the insights graph: habit_stats -> insights."""
    require_openai_key()

    state = InsightsState(
        user_id=user_id,
        today=((req.today if req else None) or _today_utc()).isoformat(),
        habits=habits.get_user_habits(db, user_id),
    )

    try:
        result = insights_graph.invoke(state)
        return InsightsResult(insights=result["insights"], stats=result.get("stats"))
    except Exception as e:
        logger.exception(f"insights graph failed: {e}")
        raise HTTPException(
            status_code=500,
            detail={"error": "insights generation failed", "details": str(e)},
        )


# --------------------------------------------------------------------
# Local dev runner
# --------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api_main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=True,
    )

# ai_nodes.py
import json
import logging
import os
from datetime import date, datetime, timezone
from typing import Any, Dict, List

from dotenv import load_dotenv
from langchain_openai import ChatOpenAI

from habits import summarize_habits
from prompts import INSIGHTS_PROMPT, MICRO_TASK_PROMPT
from schemas import HabitStats, InsightsState, MicroTaskRequest, MicroTaskSuggestion

load_dotenv()

logger = logging.getLogger(__name__)


def _get_model(name: str, default: str) -> str:
    """
    Read a model name from env, but NEVER return None or empty string.
    """
    value = os.getenv(name)
    if not value or value.strip().lower() == "none":
        return default
    return value.strip()


MODEL_JSON = _get_model("OPENAI_MODEL_JSON", "gpt-4.1")
MODEL_TEXT = _get_model("OPENAI_MODEL_TEXT", "gpt-4.1")


def _json_llm(temperature: float = 0.3) -> ChatOpenAI:
    """
    Base JSON-optimized LLM (used with structured outputs).
    """
    return ChatOpenAI(
        model=MODEL_JSON,
        temperature=temperature,
    )


def _text_llm(temperature: float = 0.6) -> ChatOpenAI:
    """
    Base text LLM for free-form insights.
    """
    return ChatOpenAI(
        model=MODEL_TEXT,
        temperature=temperature,
    )


# ---------- Micro-task Node ----------

def _when(times: List[str]) -> str:
    specific = [t for t in times if t and t.lower() != "anytime"]
    return f"this {specific[0].lower()}" if specific else "today"


def _fallback_micro_task(req: MicroTaskRequest) -> str:
    goal = req.goal.strip() or "your habit"
    when = _when(req.times)
    if req.difficulty == "easy":
        return f"Spend just 2 minutes on {goal} {when}, then mark it done."
    if req.difficulty == "challenging":
        return f"Block 25 focused minutes {when} for {goal} and write down what you finished."
    return f"Set a 10-minute timer {when} and work on {goal} until it rings."


def suggest_micro_task_node(req: MicroTaskRequest) -> Dict[str, Any]:
    """
    Suggest one micro-task for a habit goal.

    Returns {"micro_task_suggestion": str, "source": "ai" | "fallback"}.
    """
    prompt = MICRO_TASK_PROMPT.format(
        goal=req.goal,
        times=json.dumps(req.times) if req.times else "Not specified",
        difficulty=req.difficulty,
    )

    try:
        structured_llm = _json_llm(temperature=0.5).with_structured_output(MicroTaskSuggestion)
        result = structured_llm.invoke(prompt)
        suggestion = (result.micro_task_suggestion or "").strip()
        if suggestion:
            return {"micro_task_suggestion": suggestion, "source": "ai"}
        logger.warning("Micro-task LLM returned an empty suggestion; using fallback.")
    except Exception as e:
        logger.warning(f"suggest_micro_task_node failed, using fallback: {e}")

    return {"micro_task_suggestion": _fallback_micro_task(req), "source": "fallback"}


# ---------- Insights Nodes ----------

def _today(state: InsightsState) -> date:
    if state.today:
        return date.fromisoformat(state.today[:10])
    return datetime.now(timezone.utc).date()


def habit_stats_node(state: InsightsState) -> Dict[str, Any]:
    """
    Deterministic first step: dashboard stats plus the compact habit JSON
    the LLM sees (title, number of logged days, current streak).
    """
    stats = summarize_habits(state.habits, _today(state))
    habits_data = state.habits_data or json.dumps(
        [
            {"title": h.title, "progress": len(h.progress), "streak": h.streak}
            for h in state.habits
        ],
        ensure_ascii=False,
    )
    return {"stats": stats, "habits_data": habits_data}


def _fallback_insights(stats: HabitStats) -> str:
    if stats.total_habits == 0:
        return (
            "You haven't added any habits yet. Start with one small daily habit "
            "and mark it done each day to build your first streak."
        )

    parts = []
    by_streak = max(stats.completion_rates, key=lambda r: r.streak)
    if by_streak.streak > 0:
        parts.append(
            f'"{by_streak.title}" is your strongest habit right now with a '
            f"{by_streak.streak}-day streak."
        )
    else:
        parts.append("None of your habits has an active streak yet; completing one today starts it.")

    weakest = min(stats.completion_rates, key=lambda r: r.completion_rate)
    if weakest.habit_id != by_streak.habit_id:
        parts.append(
            f'"{weakest.title}" has the lowest completion rate '
            f"({weakest.completion_rate:.0f}%), so consider making it smaller or easier."
        )

    if stats.todays_focus:
        parts.append(f"You have {len(stats.todays_focus)} habit(s) to focus on today.")
    return " ".join(parts)


def insights_node(state: InsightsState) -> Dict[str, Any]:
    """
    Ask the text LLM for personalized insights; fall back to a deterministic
    summary of the stats if the call fails or returns nothing useful.
    """
    stats = state.stats or summarize_habits(state.habits, _today(state))
    fallback = _fallback_insights(stats)

    if not state.habits:
        return {"insights": fallback}

    prompt = INSIGHTS_PROMPT.format(
        habits_data=state.habits_data or "[]",
        stats_json=json.dumps(stats.model_dump(), ensure_ascii=False),
    )

    try:
        resp = _text_llm(temperature=0.5).invoke(prompt)
        insights = (resp.content or "").strip()
        if not insights or len(insights.split()) < 5:
            logger.warning("Insights LLM returned too little text; using fallback.")
            insights = fallback
    except Exception as e:
        logger.warning(f"insights_node failed for user {state.user_id}: {e}")
        insights = fallback

    return {"insights": insights}

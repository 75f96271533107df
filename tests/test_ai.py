import json

import pytest

import ai_nodes
from ai_nodes import habit_stats_node, insights_node, suggest_micro_task_node
from graph_app import build_insights_graph
from schemas import Habit, InsightsState, MicroTaskRequest, MicroTaskSuggestion, ProgressEntry

from .conftest import FakeStructuredLLM


def _habits():
    return [
        Habit(
            id="h1",
            user_id="u1",
            title="Read",
            streak=3,
            progress=[
                ProgressEntry(date="2024-05-01", completed=True),
                ProgressEntry(date="2024-05-02", completed=True),
            ],
            created_at="2024-04-01T00:00:00+00:00",
        ),
        Habit(
            id="h2",
            user_id="u1",
            title="Run",
            streak=0,
            progress=[ProgressEntry(date="2024-05-01", completed=False)],
            created_at="2024-04-02T00:00:00+00:00",
        ),
    ]


@pytest.fixture
def use_json_llm(monkeypatch):
    def install(llm):
        monkeypatch.setattr(ai_nodes, "_json_llm", lambda temperature=0.3: llm)
        return llm

    return install


@pytest.fixture
def use_text_llm(monkeypatch):
    def install(llm):
        monkeypatch.setattr(ai_nodes, "_text_llm", lambda temperature=0.6: llm)
        return llm

    return install


# ---------- micro-task ----------

def test_micro_task_uses_llm_suggestion(use_json_llm, fake_llm_factory):
    structured = FakeStructuredLLM(
        result=MicroTaskSuggestion(micro_task_suggestion="  Read one page before bed.  ")
    )
    use_json_llm(fake_llm_factory(structured=structured))

    result = suggest_micro_task_node(
        MicroTaskRequest(goal="Read more", times=["evening"], difficulty="easy")
    )

    assert result == {"micro_task_suggestion": "Read one page before bed.", "source": "ai"}
    prompt = structured.prompts[0]
    assert "Read more" in prompt
    assert '["evening"]' in prompt
    assert "easy" in prompt


def test_micro_task_falls_back_on_error(use_json_llm, fake_llm_factory):
    use_json_llm(fake_llm_factory(error=RuntimeError("rate limited")))

    result = suggest_micro_task_node(
        MicroTaskRequest(goal="meditation", times=["anytime", "Morning"], difficulty="easy")
    )

    assert result["source"] == "fallback"
    assert result["micro_task_suggestion"] == (
        "Spend just 2 minutes on meditation this morning, then mark it done."
    )


def test_micro_task_falls_back_on_empty_answer(use_json_llm, fake_llm_factory):
    structured = FakeStructuredLLM(result=MicroTaskSuggestion(micro_task_suggestion="   "))
    use_json_llm(fake_llm_factory(structured=structured))

    result = suggest_micro_task_node(MicroTaskRequest(goal="journaling", difficulty="challenging"))

    assert result["source"] == "fallback"
    assert result["micro_task_suggestion"] == (
        "Block 25 focused minutes today for journaling and write down what you finished."
    )


def test_micro_task_medium_fallback(use_json_llm, fake_llm_factory):
    use_json_llm(fake_llm_factory(error=RuntimeError("down")))
    result = suggest_micro_task_node(MicroTaskRequest(goal="stretching"))
    assert result["micro_task_suggestion"] == (
        "Set a 10-minute timer today and work on stretching until it rings."
    )


# ---------- insights ----------

def test_habit_stats_node_builds_compact_habit_json():
    state = InsightsState(user_id="u1", today="2024-05-02", habits=_habits())
    out = habit_stats_node(state)

    assert json.loads(out["habits_data"]) == [
        {"title": "Read", "progress": 2, "streak": 3},
        {"title": "Run", "progress": 1, "streak": 0},
    ]
    assert out["stats"].total_habits == 2
    assert out["stats"].longest_streak == 3


def test_insights_without_habits_skips_llm(use_text_llm, fake_llm_factory):
    llm = use_text_llm(fake_llm_factory(content="should not be used at all here"))
    out = insights_node(InsightsState(user_id="u1", today="2024-05-02"))

    assert out["insights"].startswith("You haven't added any habits yet.")
    assert llm.prompts == []


def test_insights_uses_llm_text(use_text_llm, fake_llm_factory):
    text = "Your reading streak is strong. Try running right after you read."
    llm = use_text_llm(fake_llm_factory(content=text))

    out = insights_node(InsightsState(user_id="u1", today="2024-05-02", habits=_habits()))

    assert out["insights"] == text
    assert "longest_streak" in llm.prompts[0]


@pytest.mark.parametrize("content, error", [("Great job!", None), (None, RuntimeError("timeout"))])
def test_insights_fall_back_to_stats_summary(use_text_llm, fake_llm_factory, content, error):
    use_text_llm(fake_llm_factory(content=content, error=error))

    out = insights_node(InsightsState(user_id="u1", today="2024-05-02", habits=_habits()))

    assert '"Read" is your strongest habit right now with a 3-day streak.' in out["insights"]


def test_fallback_names_weakest_habit_even_at_zero_rate(use_text_llm, fake_llm_factory):
    use_text_llm(fake_llm_factory(error=RuntimeError("down")))
    habits = [
        Habit(id="h1", user_id="u1", title="Run", created_at="2024-04-01T00:00:00+00:00"),
        Habit(id="h2", user_id="u1", title="Read", streak=1, created_at="2024-04-02T00:00:00+00:00"),
    ]

    out = insights_node(InsightsState(user_id="u1", today="2024-05-02", habits=habits))

    assert '"Run" has the lowest completion rate (0%)' in out["insights"]


def test_insights_graph_runs_both_steps(use_text_llm, fake_llm_factory):
    text = "Keep your reading streak alive and add a short run after it."
    use_text_llm(fake_llm_factory(content=text))

    graph = build_insights_graph()
    result = graph.invoke(InsightsState(user_id="u1", today="2024-05-02", habits=_habits()))

    assert result["insights"] == text
    assert result["stats"].total_habits == 2
    assert json.loads(result["habits_data"])[0]["title"] == "Read"

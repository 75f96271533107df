from langgraph.graph import StateGraph, END
from schemas import InsightsState
from ai_nodes import (
    habit_stats_node,
    insights_node,
)


def build_insights_graph():
    """
    Dashboard insights flow:

    1) habit_stats – deterministic streak / completion stats + compact habit JSON.
    2) insights    – LLM turns the data into personalized tips (falls back to stats).
    """
    graph = StateGraph(InsightsState)

    graph.add_node("habit_stats", habit_stats_node)
    graph.add_node("insights", insights_node)

    graph.set_entry_point("habit_stats")

    graph.add_edge("habit_stats", "insights")
    graph.add_edge("insights", END)

    return graph.compile()

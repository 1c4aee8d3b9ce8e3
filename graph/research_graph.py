"""
LangGraph workflow orchestration.

Defines the stage sequence: Expand → Search → Process → Analyze
"""

from typing import Any, Awaitable, Callable, Dict

from langgraph.graph import StateGraph, END
from loguru import logger

from graph.state import ResearchState

StageNode = Callable[[ResearchState], Awaitable[Dict[str, Any]]]


def create_research_graph(
    expand: StageNode,
    search: StageNode,
    process: StageNode,
    analyze: StageNode
):
    """
    Create LangGraph workflow for one research job.

    Flow:
        START → Expand → Search → Process → Analyze → END

    Args:
        expand: Node producing "topics"
        search: Node producing "documents_by_topic"
        process: Node enriching "documents_by_topic" with full text
        analyze: Node producing "analysis"

    Returns:
        Compiled StateGraph ready to stream
    """
    logger.debug("Building LangGraph workflow...")

    workflow = StateGraph(ResearchState)

    workflow.add_node("expand", expand)
    workflow.add_node("search", search)
    workflow.add_node("process", process)
    workflow.add_node("analyze", analyze)

    # Strictly linear: no stage may be skipped
    workflow.set_entry_point("expand")
    workflow.add_edge("expand", "search")
    workflow.add_edge("search", "process")
    workflow.add_edge("process", "analyze")
    workflow.add_edge("analyze", END)

    return workflow.compile()

"""
Discovery Engine — Experiment Strategies
========================================
Version 1.0 — October 2026

Tool-backed strategies for experiment nodes. Every tool call is bracketed
by node.tool.start / node.tool.result events, and a tool answering
ok=False fails the node with the tool's data as the detail.
"""

import logging
from typing import Any, Dict

from ..errors import ToolError
from ..events import NODE_TOOL_RESULT, NODE_TOOL_START
from ..orchestrator_types import CollectedData, HypothesisResult, ROLE_HYPOTHESIZE
from ..tools import ToolContext, ToolInput
from .base import node_brief, require_ancestor_result

logger = logging.getLogger(__name__)


QUERY_PROMPT = """For the overall goal "{goal}", under the hypothesis "{hypothesis}", and for the specific task "{brief}",
what is the best search query to execute? Respond with the query only.
"""


async def collect_with_tool(tool, query: str, task_id: str, run_id: str, event_log) -> Dict[str, Any]:
    """Call a search tool and turn its answer into a CollectedData result."""
    event_log.emit(NODE_TOOL_START, run_id, node_id=task_id, data={"name": tool.name, "input": query})
    result = await tool.call(ToolInput(query=query), ToolContext(run_id=run_id))
    event_log.emit(NODE_TOOL_RESULT, run_id, node_id=task_id, data={"name": tool.name, "output": result.to_dict()})

    if not result.ok:
        raise ToolError(tool.name, result.data)

    return CollectedData(data=str(result.data), sources=result.sources).model_dump()


class DataCollectionStrategy:
    """Deliberates a search query for the node's task, then runs it."""

    def __init__(self, reasoning, tool):
        self.reasoning = reasoning
        self.tool = tool

    async def execute(self, task_id, dependency_ids, run_state, graph, run_id, event_log) -> Dict[str, Any]:
        hypothesis = require_ancestor_result(graph, run_state, task_id, ROLE_HYPOTHESIZE, HypothesisResult)

        query = await self.reasoning.generate_text(QUERY_PROMPT.format(
            goal=run_state.goal,
            hypothesis=hypothesis.hypothesis,
            brief=node_brief(graph, task_id),
        ))
        logger.info(f"[SEARCH] {task_id} query: {query}")
        return await collect_with_tool(self.tool, query, task_id, run_id, event_log)


class DirectSearchStrategy:
    """Searches with the node's brief as the query, skipping deliberation."""

    def __init__(self, tool):
        self.tool = tool

    async def execute(self, task_id, dependency_ids, run_state, graph, run_id, event_log) -> Dict[str, Any]:
        query = f"Find peer-reviewed articles about: {node_brief(graph, task_id)}"
        return await collect_with_tool(self.tool, query, task_id, run_id, event_log)

"""
Strategies - Shared Helpers
===========================
Lookups every built-in strategy needs: its own brief, the typed result
of an ancestor, and the results of its direct dependencies.
"""

import json
from typing import Any, Dict, List, Type, TypeVar

from pydantic import BaseModel

from ..errors import StrategyError
from ..graph import FAILURE_INJECTION_MARKER

ModelT = TypeVar("ModelT", bound=BaseModel)


def node_brief(graph, task_id: str) -> str:
    """The node's brief, without the failure-injection marker."""
    node = graph.get(task_id)
    if node is None:
        return ""
    return node.brief.replace(FAILURE_INJECTION_MARKER, "").strip()


def require_ancestor_result(graph, run_state, task_id: str, role: str, model: Type[ModelT]) -> ModelT:
    """
    Typed result of the nearest ancestor with the given role.

    Raises:
        StrategyError: If no such ancestor exists or it has no result yet
    """
    ancestor = graph.find_ancestor(task_id, role)
    if ancestor is None:
        raise StrategyError(f"Could not find parent {role} node for node {task_id}")
    if ancestor.id not in run_state:
        raise StrategyError(f"Could not find state for {role} node {ancestor.id}")
    return run_state.result(ancestor.id, model)


def dependency_results(run_state, dependency_ids: List[str], exclude_roles=()) -> Dict[str, Any]:
    """Recorded results of direct dependencies, optionally skipping some roles."""
    results = {}
    for dep_id in dependency_ids:
        entry = run_state.get(dep_id)
        if entry is None:
            continue
        if entry.get("role") in exclude_roles:
            continue
        results[dep_id] = entry
    return results


def format_results(results: Dict[str, Any]) -> str:
    if not results:
        return "(none)"
    return "\n".join(
        f"Result from {dep_id}: {json.dumps(entry, default=str)}" for dep_id, entry in results.items()
    )

"""
Discovery Engine — Replay
=========================
Version 1.0 — October 2026

Rebuilds what a dashboard would show (node views and the session
status) from an event list alone. Pure: no engine objects are touched.
Accepts Event instances or wire-format dicts (e.g. read back from an
NDJSON file). Unknown event types are ignored.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from .events import (
    NODE_RESULT,
    NODE_START,
    NODE_STATUS_UPDATE,
    NODE_TOOL_RESULT,
    NODE_TOOL_START,
    REPAIR_FAILED,
    REPAIR_FAILED_PERMANENT,
    RUN_DONE,
    RUN_FAILED,
    RUN_START,
    RUN_STOPPED,
)
from .orchestrator_types import Event, NodeStatus
from .session import SessionStatus


@dataclass
class NodeView:
    id: str
    role: str = ""
    brief: str = ""
    status: str = NodeStatus.PENDING.value
    depends_on: List[str] = field(default_factory=list)
    output: Optional[Dict[str, Any]] = None
    active_tool: Optional[str] = None


@dataclass
class RunView:
    run_id: Optional[str] = None
    goal: Optional[str] = None
    status: SessionStatus = SessionStatus.IDLE
    nodes: Dict[str, NodeView] = field(default_factory=dict)
    approved: Optional[bool] = None
    final_message: Optional[str] = None
    error: Optional[str] = None
    event_count: int = 0


def _unpack(event: Union[Event, Dict[str, Any]]):
    if isinstance(event, Event):
        return event.run_id, event.type, event.node_id, event.data
    return event.get("runId"), event.get("type"), event.get("nodeId"), event.get("data") or {}


def replay(events: Iterable[Union[Event, Dict[str, Any]]]) -> RunView:
    """Fold an event list into a RunView."""
    view = RunView()

    for event in events:
        run_id, event_type, node_id, data = _unpack(event)
        view.event_count += 1
        if view.run_id is None:
            view.run_id = run_id
        node = view.nodes.get(node_id) if node_id else None

        if event_type == RUN_START:
            view.goal = data.get("goal")
            view.status = SessionStatus.RUNNING

        elif event_type == NODE_START and node_id:
            if node is None:
                node = view.nodes[node_id] = NodeView(id=node_id)
            node.role = data.get("role", node.role)
            node.brief = data.get("brief", node.brief)
            node.status = NodeStatus.RUNNING.value

        elif event_type == NODE_STATUS_UPDATE and node is not None:
            node.status = data.get("status", node.status)

        elif event_type == NODE_RESULT and node is not None:
            node.status = NodeStatus.COMPLETED.value if data.get("repaired") else data.get("status", node.status)
            node.output = data
            # A design result announces the experiment nodes before they start
            for task in data.get("tasks") or []:
                task_id = task.get("taskId")
                if task_id and task_id not in view.nodes:
                    view.nodes[task_id] = NodeView(
                        id=task_id,
                        role=task.get("role", ""),
                        brief=task.get("brief", ""),
                        depends_on=list(task.get("dependsOn") or []),
                    )

        elif event_type == NODE_TOOL_START and node is not None:
            node.active_tool = data.get("name")

        elif event_type == NODE_TOOL_RESULT and node is not None:
            node.active_tool = None

        elif event_type in (REPAIR_FAILED, REPAIR_FAILED_PERMANENT):
            view.status = SessionStatus.FAILED

        elif event_type == RUN_FAILED:
            view.status = SessionStatus.FAILED
            view.error = data.get("error")

        elif event_type == RUN_DONE:
            view.status = SessionStatus.COMPLETED
            view.approved = data.get("approved")
            view.final_message = data.get("finalMessage")

        elif event_type == RUN_STOPPED:
            view.status = SessionStatus.STOPPED

    return view

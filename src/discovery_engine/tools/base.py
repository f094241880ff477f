"""
Tool Interface
==============
Capability interface invoked by strategies.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol

from ..orchestrator_types import Source


@dataclass
class ToolInput:
    query: str


@dataclass
class ToolContext:
    run_id: str


@dataclass
class ToolResult:
    """Outcome of a tool call. ok=False carries the error detail in data."""
    ok: bool
    data: Any
    sources: List[Source] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "data": self.data,
            "sources": [s.model_dump() for s in self.sources],
        }


class Tool(Protocol):
    """A named capability strategies can call."""
    name: str

    async def call(self, tool_input: ToolInput, context: ToolContext) -> ToolResult:
        ...

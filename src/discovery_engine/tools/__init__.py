"""
Discovery Engine — Tools Package
================================
Version 1.0 — October 2026

Tool interface and search tools.
All tools are async for non-blocking execution inside a dispatch wave.
"""

from .base import Tool, ToolInput, ToolContext, ToolResult
from .search_tools import TavilySearchTool, StaticSearchTool

__all__ = [
    "Tool",
    "ToolInput",
    "ToolContext",
    "ToolResult",
    "TavilySearchTool",
    "StaticSearchTool",
]

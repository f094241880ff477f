"""
Search Tools for DataCollection
===============================

Web search tool backed by Tavily, plus a static stand-in for offline runs.
Tavily is optimized for AI agents and provides clean, structured results.

Uses dedicated langchain-tavily package (not langchain-community).
"""

import logging
import os
from typing import Any, Dict, List, Optional

from langchain_tavily import TavilySearch

from ..config import SEARCH_API_KEY
from ..errors import ConfigurationError
from ..orchestrator_types import Source
from .base import ToolContext, ToolInput, ToolResult

logger = logging.getLogger(__name__)

SEARCH_FAILED_MESSAGE = "Failed to perform search."


def get_tavily_search_tool(max_results: int = 5) -> TavilySearch:
    """
    Get configured Tavily search tool.

    Args:
        max_results: Maximum number of search results to return

    Returns:
        Configured TavilySearch tool

    Raises:
        ConfigurationError: If TAVILY_API_KEY is not set
    """
    if not os.getenv(SEARCH_API_KEY):
        raise ConfigurationError(
            f"{SEARCH_API_KEY} not found in environment. "
            "Get your key at https://app.tavily.com"
        )

    return TavilySearch(
        max_results=max_results,
        topic="general",
        include_answer=True,
    )


def _summarize_results(response: Any) -> Dict[str, Any]:
    """Turn a Tavily response into text plus sources."""
    if isinstance(response, dict):
        answer = response.get("answer")
        results = response.get("results") or []
    else:
        answer = None
        results = response if isinstance(response, list) else []

    sources: List[Source] = []
    snippets: List[str] = []
    for item in results:
        if not isinstance(item, dict):
            continue
        url = item.get("url")
        if url:
            sources.append(Source(uri=url, title=item.get("title") or ""))
        content = item.get("content")
        if content:
            snippets.append(f"{item.get('title') or url}: {content}")

    data = answer or "\n".join(snippets)
    return {"data": data, "sources": sources}


class TavilySearchTool:
    """Web search through Tavily. Failures come back as ok=False, never raise."""

    name = "search"
    description = "Performs a web search to find up-to-date information."

    def __init__(self, max_results: int = 5, client: Optional[TavilySearch] = None):
        self.max_results = max_results
        self._client = client

    def _get_client(self) -> TavilySearch:
        if self._client is None:
            self._client = get_tavily_search_tool(max_results=self.max_results)
        return self._client

    async def call(self, tool_input: ToolInput, context: ToolContext) -> ToolResult:
        try:
            response = await self._get_client().ainvoke({"query": tool_input.query})
        except Exception as e:
            logger.error(f"[SEARCH] Tavily search failed for run {context.run_id}: {e}")
            return ToolResult(ok=False, data=SEARCH_FAILED_MESSAGE)

        if isinstance(response, dict) and response.get("error"):
            logger.error(f"[SEARCH] Tavily returned an error: {response['error']}")
            return ToolResult(ok=False, data=SEARCH_FAILED_MESSAGE)

        summary = _summarize_results(response)
        logger.info(f"[SEARCH] '{tool_input.query}' returned {len(summary['sources'])} sources")
        return ToolResult(ok=True, data=summary["data"], sources=summary["sources"])


class StaticSearchTool:
    """
    Offline search tool used by mock runs and tests.

    Returns the same canned answer for every query; with ok=False it
    behaves like a search backend that is down.
    """

    name = "search"

    def __init__(
        self,
        data: str = "Static search results.",
        sources: Optional[List[Source]] = None,
        ok: bool = True,
    ):
        self.data = data
        self.sources = list(sources) if sources is not None else [
            Source(uri="https://example.org/static", title="Static source")
        ]
        self.ok = ok
        self.queries: List[str] = []

    async def call(self, tool_input: ToolInput, context: ToolContext) -> ToolResult:
        self.queries.append(tool_input.query)
        if not self.ok:
            return ToolResult(ok=False, data=SEARCH_FAILED_MESSAGE)
        return ToolResult(ok=True, data=self.data, sources=list(self.sources))

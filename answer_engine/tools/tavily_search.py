from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tavily import AsyncTavilyClient


@dataclass
class SearchResult:
    title: str
    url: str
    content: str
    score: float


async def search(
    query: str,
    *,
    api_key: str,
    search_depth: str = "advanced",
    max_results: int = 5,
    include_images: bool = False,
    include_answer: bool = False,
) -> list[SearchResult]:
    """Execute a Tavily web search and return structured results."""
    client = AsyncTavilyClient(api_key=api_key)

    kwargs: dict[str, Any] = {
        "query": query,
        "search_depth": search_depth,
        "max_results": max_results,
        "include_images": include_images,
        "include_answer": include_answer,
    }

    response = await client.search(**kwargs)

    return [
        SearchResult(
            title=r.get("title", "") or r.get("url", ""),
            url=r.get("url", ""),
            content=r.get("content", "") or r.get("snippet", ""),
            score=r.get("score", 0.0),
        )
        for r in response.get("results", [])
    ]

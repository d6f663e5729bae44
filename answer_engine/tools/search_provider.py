from __future__ import annotations

from dataclasses import dataclass

from answer_engine.config import settings
from answer_engine.exceptions import SearchUnavailable
from answer_engine.models.messages import Source
from answer_engine.tools import tavily_search
from answer_engine.tools.tavily_search import SearchResult


@dataclass
class SearchResponse:
    results: list[SearchResult]
    provider: str


@dataclass
class SearchProvider:
    """Web search with a fixed depth/result-count policy.

    An empty ``api_key`` means search is disabled.
    """

    api_key: str = ""
    search_depth: str = "advanced"
    max_results: int = 5

    @classmethod
    def from_settings(cls) -> "SearchProvider":
        return cls(
            api_key=settings.tavily_api_key.strip(),
            search_depth=settings.search_depth,
            max_results=settings.search_max_results,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: str) -> SearchResponse:
        if not self.enabled:
            raise SearchUnavailable("Web search is disabled: no Tavily API key configured")

        results = await tavily_search.search(
            query=query,
            api_key=self.api_key,
            search_depth=self.search_depth,
            max_results=self.max_results,
            include_images=False,
            include_answer=False,
        )
        return SearchResponse(results=results, provider="tavily")


def results_to_sources(results: list[SearchResult]) -> list[Source]:
    """Convert search hits into citable sources, dropping hits without a URL."""
    sources: list[Source] = []
    for r in results:
        url = (r.url or "").strip()
        if not url:
            continue
        sources.append(
            Source(id=url, title=r.title.strip() or url, url=url, snippet=r.content.strip())
        )
    return sources

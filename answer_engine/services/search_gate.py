from __future__ import annotations

from answer_engine.exceptions import ClassificationFailure, StreamError
from answer_engine.llm_client import CompletionsAdapter
from answer_engine.models.messages import Source
from answer_engine.prompts import SEARCH_NECESSITY_SYSTEM_PROMPT, get_search_check_prompt
from answer_engine.services import logger as log_service
from answer_engine.services.cancellation import CancellationToken
from answer_engine.tools.search_provider import SearchProvider, results_to_sources


class SearchGate:
    """Decides whether a query needs live search and retrieves sources.

    Every failure here is recovered locally: a failed classification means
    "search", a failed or disabled search means "no context".
    """

    def __init__(
        self,
        llm: CompletionsAdapter,
        provider: SearchProvider,
        *,
        classifier_model: str | None = None,
    ):
        self.llm = llm
        self.provider = provider
        self.classifier_model = classifier_model or None

    @property
    def enabled(self) -> bool:
        return self.provider.enabled

    async def should_search(
        self, query: str, token: CancellationToken | None = None
    ) -> bool:
        """Ask the model, deterministically, whether the query needs live information."""
        try:
            return await self._classify(query, token)
        except ClassificationFailure as e:
            log_service.log_event(
                event_type="classification_failure",
                message="Search check failed, defaulting to search",
                level="WARNING",
                error=str(e),
            )
            return True

    async def _classify(self, query: str, token: CancellationToken | None) -> bool:
        try:
            response = await self.llm.create(
                [
                    {"role": "system", "content": SEARCH_NECESSITY_SYSTEM_PROMPT},
                    {"role": "user", "content": get_search_check_prompt(query)},
                ],
                caller="search_gate.should_search",
                token=token,
                model=self.classifier_model,
                max_tokens=10,
                temperature=0,
            )
        except StreamError as e:
            raise ClassificationFailure(str(e)) from e

        verdict = response.text.strip().strip(".\"'").lower()
        if verdict.startswith("true"):
            return True
        if verdict.startswith("false"):
            return False
        raise ClassificationFailure(f"Unexpected search check answer: {response.text[:50]!r}")

    async def retrieve(
        self,
        query: str,
        token: CancellationToken | None = None,
        *,
        gated: bool = True,
    ) -> list[Source]:
        """Return ranked sources for ``query``; an empty list means no context."""
        if not self.provider.enabled:
            log_service.log_event(
                event_type="search_unavailable",
                message="Search skipped: no search credential configured",
                level="DEBUG",
            )
            return []

        if gated and not await self.should_search(query, token):
            return []

        if token is not None and token.cancelled:
            return []

        try:
            response = await self.provider.search(query)
        except Exception as e:
            log_service.log_event(
                event_type="search_unavailable",
                message="Search call failed, continuing without context",
                level="WARNING",
                error=str(e),
                query=query[:100],
            )
            return []

        return results_to_sources(response.results)

    @staticmethod
    def format_context(sources: list[Source]) -> str:
        return "\n\n".join(f"[Source: {s.title}]\n{s.snippet}" for s in sources)

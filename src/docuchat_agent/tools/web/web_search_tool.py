from typing import Any

from loguru import logger
from pydantic import BaseModel, Field
from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt

from docuchat_agent.tool import ToolInput, schema_for
from docuchat_agent.tools.web.search_provider import SearchProvider

MAX_ATTEMPTS = 3
FALLBACK_ERROR = "Error: Failed to perform web search after multiple attempts."


class WebSearchInput(ToolInput):
    query: str = Field(min_length=1, description="The search query.")


class WebSearchTool:
    def __init__(self, provider: SearchProvider, *, max_results: int = 3) -> None:
        self._provider = provider
        self._max_results = max_results

    @property
    def name(self) -> str:
        return "web_search"

    @property
    def description(self) -> str:
        return (
            "Search the web for current or unknown information. Returns the text "
            "content of the top results."
        )

    @property
    def input_model(self) -> type[BaseModel]:
        return WebSearchInput

    @property
    def input_schema(self) -> dict[str, Any]:
        return schema_for(WebSearchInput)

    @property
    def requires_session(self) -> bool:
        return False

    async def execute(self, tool_input: WebSearchInput) -> str:
        query = tool_input.query.strip()
        if not query:
            return "Error: query must not be empty"

        # Immediate sequential re-attempts, no backoff.
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(MAX_ATTEMPTS),
                retry=retry_if_exception_type(Exception),
                before_sleep=_log_failed_attempt,
            ):
                with attempt:
                    results = await self._provider.search(query, self._max_results)
        except RetryError as ex:
            logger.error(
                f"web_search ({self._provider.provider_name}) failed after {MAX_ATTEMPTS} attempts: "
                f"{ex.last_attempt.exception()}"
            )
            return FALLBACK_ERROR

        if not results:
            return f"No results found for: {query}"
        return "\n\n".join(r.content for r in results)


def _log_failed_attempt(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(f"web_search failed (attempt {retry_state.attempt_number}/{MAX_ATTEMPTS}): {exc}")

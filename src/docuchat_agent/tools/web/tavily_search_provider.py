import httpx

from docuchat_agent.tools.web.search_provider import SearchResult

_TAVILY_SEARCH_URL = "https://api.tavily.com/search"
_TIMEOUT_SECONDS = 30


class TavilySearchProvider:
    def __init__(self, api_key: str) -> None:
        self._api_key = api_key

    @property
    def provider_name(self) -> str:
        return "Tavily"

    async def search(self, query: str, max_results: int) -> list[SearchResult]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        payload = {"query": query, "max_results": max_results}

        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
            response = await client.post(_TAVILY_SEARCH_URL, headers=headers, json=payload)

        if response.status_code >= 400:
            raise httpx.HTTPStatusError(
                f"HTTP {response.status_code} from Tavily Search API",
                request=response.request,
                response=response,
            )

        data = response.json()
        return [
            SearchResult(
                title=r.get("title", "(no title)"),
                url=r.get("url", ""),
                content=r.get("content", ""),
            )
            for r in data.get("results", [])
        ]

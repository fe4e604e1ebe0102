from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from docuchat_agent.errors import DuplicateToolError, SchemaValidationError, ToolNotFoundError
from docuchat_agent.tool import SESSION_ARGUMENT, Tool


@dataclass(frozen=True)
class ToolSpec:
    """What the model is told about a tool."""

    name: str
    description: str
    input_schema: dict[str, Any]


class ToolRegistry:
    """Fixed set of named tools, shared read-only by every orchestration run."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def list_for_model(self) -> list[ToolSpec]:
        specs = []
        for tool in self._tools.values():
            schema = tool.input_schema
            if tool.requires_session:
                schema = _without_session_argument(schema)
            specs.append(ToolSpec(name=tool.name, description=tool.description, input_schema=schema))
        return specs

    async def invoke(self, name: str, args: dict[str, Any] | None, *, session_id: str | None = None) -> str:
        """Validate ``args`` and run the tool.

        Raises ToolNotFoundError or SchemaValidationError before the tool runs. Once the
        tool is running, any exception becomes an error text result.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)

        payload = dict(args or {})
        if tool.requires_session:
            if not session_id:
                raise SchemaValidationError(name, f"{SESSION_ARGUMENT} is required")
            proposed = payload.get(SESSION_ARGUMENT)
            if proposed is not None and proposed != session_id:
                logger.warning(f"{name}: ignoring model-supplied {SESSION_ARGUMENT} {proposed!r}")
            payload[SESSION_ARGUMENT] = session_id

        try:
            tool_input = tool.input_model.model_validate(payload)
        except PydanticValidationError as ex:
            raise SchemaValidationError(name, _describe_validation_error(ex)) from ex

        try:
            return await tool.execute(tool_input)
        except Exception as ex:
            logger.error(f"{name} failed: {ex}")
            return f'Error executing tool "{name}": {ex}'


def _without_session_argument(schema: dict[str, Any]) -> dict[str, Any]:
    stripped = dict(schema)
    stripped["properties"] = {
        k: v for k, v in schema.get("properties", {}).items() if k != SESSION_ARGUMENT
    }
    stripped["required"] = [r for r in schema.get("required", []) if r != SESSION_ARGUMENT]
    return stripped


def _describe_validation_error(ex: PydanticValidationError) -> str:
    parts = []
    for error in ex.errors():
        location = ".".join(str(p) for p in error.get("loc", ())) or "input"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


@dataclass(frozen=True)
class ToolGroup:
    enabled: Callable[[dict], bool]
    build: Callable[[dict], list[Tool]]


def _document_search_enabled(ctx: dict) -> bool:
    return ctx.get("vector_index") is not None


def _document_search_tools(ctx: dict) -> list[Tool]:
    from docuchat_agent.tools.documents.document_search_tool import DocumentSearchTool

    return [DocumentSearchTool(ctx["vector_index"], top_k=ctx.get("document_search_top_k", 4))]


def _web_search_enabled(ctx: dict) -> bool:
    return bool(ctx.get("tavily_api_key"))


def _web_search_tools(ctx: dict) -> list[Tool]:
    from docuchat_agent.tools.web.tavily_search_provider import TavilySearchProvider
    from docuchat_agent.tools.web.web_search_tool import WebSearchTool

    return [
        WebSearchTool(
            TavilySearchProvider(ctx["tavily_api_key"]),
            max_results=ctx.get("web_search_max_results", 3),
        )
    ]


def _calendar_enabled(ctx: dict) -> bool:
    return bool(
        ctx.get("google_client_id")
        and ctx.get("google_client_secret")
        and ctx.get("token_store") is not None
    )


def _calendar_tools(ctx: dict) -> list[Tool]:
    from docuchat_agent.tools.calendar.calendar_auth import CalendarServiceFactory
    from docuchat_agent.tools.calendar.calendar_create_event_tool import CalendarCreateEventTool
    from docuchat_agent.tools.calendar.calendar_delete_event_tool import CalendarDeleteEventTool
    from docuchat_agent.tools.calendar.calendar_list_events_tool import CalendarListEventsTool

    services = CalendarServiceFactory(
        ctx["token_store"],
        ctx["google_client_id"],
        ctx["google_client_secret"],
    )
    return [
        CalendarCreateEventTool(services),
        CalendarListEventsTool(services),
        CalendarDeleteEventTool(services),
    ]


def _expenses_enabled(ctx: dict) -> bool:
    return ctx.get("expense_store") is not None


def _expense_tools(ctx: dict) -> list[Tool]:
    from docuchat_agent.tools.expenses.expense_add_tool import ExpenseAddTool
    from docuchat_agent.tools.expenses.expense_delete_tool import ExpenseDeleteTool
    from docuchat_agent.tools.expenses.expense_list_tool import ExpenseListTool

    store = ctx["expense_store"]
    return [
        ExpenseAddTool(store),
        ExpenseListTool(store, limit=ctx.get("expense_query_limit", 50)),
        ExpenseDeleteTool(store),
    ]


_GROUPS = [
    ToolGroup(enabled=_document_search_enabled, build=_document_search_tools),
    ToolGroup(enabled=_web_search_enabled, build=_web_search_tools),
    ToolGroup(enabled=_calendar_enabled, build=_calendar_tools),
    ToolGroup(enabled=_expenses_enabled, build=_expense_tools),
]


def build_registry(
    *,
    vector_index: Any = None,
    document_search_top_k: int = 4,
    tavily_api_key: str | None = None,
    web_search_max_results: int = 3,
    token_store: Any = None,
    google_client_id: str | None = None,
    google_client_secret: str | None = None,
    expense_store: Any = None,
    expense_query_limit: int = 50,
) -> ToolRegistry:
    ctx = {
        "vector_index": vector_index,
        "document_search_top_k": document_search_top_k,
        "tavily_api_key": tavily_api_key,
        "web_search_max_results": web_search_max_results,
        "token_store": token_store,
        "google_client_id": google_client_id,
        "google_client_secret": google_client_secret,
        "expense_store": expense_store,
        "expense_query_limit": expense_query_limit,
    }

    registry = ToolRegistry()
    for group in _GROUPS:
        if group.enabled(ctx):
            for tool in group.build(ctx):
                registry.register(tool)
    return registry

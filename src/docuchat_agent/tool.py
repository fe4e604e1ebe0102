from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

SESSION_ARGUMENT = "sessionId"


@runtime_checkable
class Tool(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def input_model(self) -> type[BaseModel]: ...

    @property
    def input_schema(self) -> dict[str, Any]: ...

    @property
    def requires_session(self) -> bool: ...

    async def execute(self, tool_input: Any) -> str: ...


class ToolInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SessionScopedInput(ToolInput):
    """Input for tools that touch user-scoped data. The value is always injected server-side."""

    session_id: str = Field(
        alias=SESSION_ARGUMENT,
        min_length=1,
        description="The session ID of the user, used as the isolation namespace.",
    )


def schema_for(model: type[BaseModel]) -> dict[str, Any]:
    """JSON schema for a tool input model, with $defs inlined and titles removed."""
    raw = model.model_json_schema(by_alias=True)
    defs = raw.pop("$defs", {})
    return _clean(raw, defs)


def _clean(node: Any, defs: dict[str, Any]) -> Any:
    if isinstance(node, dict):
        if "$ref" in node:
            target = defs[node["$ref"].rsplit("/", 1)[-1]]
            merged = {**target, **{k: v for k, v in node.items() if k != "$ref"}}
            return _clean(merged, defs)
        return {
            k: _clean(v, defs)
            for k, v in node.items()
            if not (k == "title" and isinstance(v, str))
        }
    if isinstance(node, list):
        return [_clean(item, defs) for item in node]
    return node

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from docuchat_agent.memory.session_store import SessionStore
from docuchat_agent.provider import ModelInvoker
from docuchat_agent.tool_registry import ToolRegistry


@dataclass
class AgentConfig:
    provider: ModelInvoker
    registry: ToolRegistry
    session_store: SessionStore
    event_emitter: Any = None
    history_window_messages: int = 10
    max_cycles: int = 5
    max_tool_result_chars: int = 40_000
    request_timeout_seconds: float = 120.0
    clock: Callable[[], datetime] | None = None

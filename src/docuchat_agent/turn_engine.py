from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from docuchat_agent.errors import OrchestrationLimitError, SchemaValidationError, ToolNotFoundError
from docuchat_agent.history import model_window
from docuchat_agent.messages import Message, TokenUsage, ToolCall
from docuchat_agent.provider import ModelInvoker
from docuchat_agent.tool_registry import ToolRegistry


class TurnState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"


@dataclass(frozen=True)
class TurnResult:
    answer: str
    cycles: int
    usage: TokenUsage


def _noop(*_args, **_kwargs) -> None:
    return None


class TurnEngine:
    """Model/tool loop for one user message.

    Tool calls from one model turn run sequentially in the order the model listed
    them. Every requested call gets exactly one tool message, including unknown
    tools and invalid arguments.
    """

    def __init__(
        self,
        *,
        provider: ModelInvoker,
        registry: ToolRegistry,
        keep_last: int = 10,
        max_cycles: int = 5,
        max_tool_result_chars: int = 40_000,
        on_tool_started: Callable[[str, str, str], None] = _noop,
        on_tool_completed: Callable[..., None] = _noop,
    ) -> None:
        if max_cycles <= 0:
            raise ValueError("max_cycles must be positive")
        self._provider = provider
        self._registry = registry
        self._keep_last = keep_last
        self._max_cycles = max_cycles
        self._max_tool_result_chars = max_tool_result_chars
        self._on_tool_started = on_tool_started
        self._on_tool_completed = on_tool_completed
        self._tool_specs = registry.list_for_model()

    async def run(
        self,
        *,
        session_id: str,
        system_prompt: str,
        history: list[Message],
        pending: list[Message],
    ) -> TurnResult:
        """Drive the loop until the model answers without tool calls.

        ``history`` is the stored transcript and is only read. New messages (the
        user message is expected to be in ``pending`` already) are appended to
        ``pending`` as they happen, so the caller can persist whatever completed
        even when the run fails.
        """
        state = TurnState.AWAITING_MODEL
        cycles = 0
        input_tokens = 0
        output_tokens = 0
        partial_answer: str | None = None

        while True:
            if state is TurnState.AWAITING_MODEL:
                if cycles >= self._max_cycles:
                    logger.warning(
                        f"Session {session_id}: cycle ceiling ({self._max_cycles}) reached without final answer"
                    )
                    raise OrchestrationLimitError(self._max_cycles, partial_answer)
                cycles += 1

                window = model_window(history + pending, self._keep_last)
                turn = await self._provider.complete(system_prompt, window, self._tool_specs)
                input_tokens += turn.usage.input_tokens
                output_tokens += turn.usage.output_tokens

                assistant = Message.assistant(turn.content, turn.tool_calls)
                pending.append(assistant)
                if turn.content:
                    partial_answer = turn.content

                if not turn.tool_calls:
                    state = TurnState.DONE
                else:
                    names = ", ".join(tc.name for tc in turn.tool_calls)
                    logger.info(f"Session {session_id}: cycle {cycles} requested tools: {names}")
                    state = TurnState.EXECUTING_TOOLS

            elif state is TurnState.EXECUTING_TOOLS:
                for call in pending[-1].tool_calls:
                    result = await self._execute_tool(call, session_id)
                    pending.append(Message.tool_result(call.id, result))
                state = TurnState.AWAITING_MODEL

            else:
                answer = pending[-1].content
                logger.info(f"Session {session_id}: final answer after {cycles} cycle(s)")
                return TurnResult(
                    answer=answer,
                    cycles=cycles,
                    usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
                )

    async def _execute_tool(self, call: ToolCall, session_id: str) -> str:
        self._on_tool_started(session_id, call.id, call.name)
        is_error = False
        try:
            result = await self._registry.invoke(call.name, call.arguments, session_id=session_id)
        except (ToolNotFoundError, SchemaValidationError) as ex:
            logger.warning(f"Session {session_id}: {ex.message}")
            result = f"Error: {ex.message}"
            is_error = True
        else:
            is_error = result.startswith("Error")
        result = self._truncate_tool_result(result, call.name)
        self._on_tool_completed(
            session_id,
            tool_call_id=call.id,
            tool_name=call.name,
            tool_input=call.arguments,
            result_text=result,
            is_error=is_error,
        )
        return result

    def _truncate_tool_result(self, result: str, tool_name: str) -> str:
        if self._max_tool_result_chars <= 0 or len(result) <= self._max_tool_result_chars:
            return result

        original_length = len(result)
        truncated = result[: self._max_tool_result_chars]
        message = (
            f"\n\n[OUTPUT TRUNCATED: Showing {self._max_tool_result_chars:,} "
            f"of {original_length:,} characters from {tool_name}]"
        )
        logger.warning(
            f"{tool_name} output truncated from {original_length:,} "
            f"to {self._max_tool_result_chars:,} chars"
        )
        return truncated + message

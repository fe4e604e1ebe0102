from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from docuchat_agent.messages import Message

DEFAULT_KEEP_LAST = 10


def for_model_call(full_history: Sequence[Message], keep_last: int = DEFAULT_KEEP_LAST) -> list[Message]:
    """The last ``keep_last`` messages of ``full_history``.

    This is a view for one inference only; ``full_history`` is never mutated. The
    system prompt is not part of stored history and is prepended by the caller.
    """
    if keep_last <= 0:
        raise ValueError("keep_last must be positive")
    if len(full_history) <= keep_last:
        return list(full_history)
    logger.debug(f"History window: sending last {keep_last} of {len(full_history)} message(s)")
    return list(full_history[-keep_last:])


def drop_leading_tool_results(window: Sequence[Message]) -> list[Message]:
    """Remove tool results at the head of a window whose requesting assistant turn was cut off.

    Chat APIs reject a tool message without its preceding tool request, and a
    trimmed window can start in the middle of a tool cycle.
    """
    start = 0
    while start < len(window) and window[start].role == "tool":
        start += 1
    if start and start == len(window):
        logger.warning(
            f"History window: all {start} message(s) are tool results whose request was trimmed; "
            "the model will see no conversation. Raise HistoryWindowMessages above the tool calls per turn."
        )
    elif start:
        logger.debug(f"History window: dropped {start} tool result(s) orphaned by trimming")
    return list(window[start:])


def model_window(full_history: Sequence[Message], keep_last: int = DEFAULT_KEEP_LAST) -> list[Message]:
    return drop_leading_tool_results(for_model_call(full_history, keep_last))

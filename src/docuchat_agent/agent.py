from __future__ import annotations

import asyncio
from datetime import UTC, datetime

from loguru import logger

from docuchat_agent.agent_config import AgentConfig
from docuchat_agent.errors import OrchestrationTimeoutError
from docuchat_agent.memory.session_store import SessionStore
from docuchat_agent.messages import Message, complete_prefix
from docuchat_agent.system_prompt import build_system_prompt
from docuchat_agent.turn_engine import TurnEngine, TurnResult


class Agent:
    """Runs one chat request end to end for a session.

    Loads the session's history, runs the turn engine under the request timeout and
    persists the new messages in a single append. Requests for the same session are
    serialized; different sessions run concurrently.
    """

    def __init__(self, config: AgentConfig):
        self._provider = config.provider
        self._registry = config.registry
        self._sessions: SessionStore = config.session_store
        self._event_emitter = config.event_emitter
        self._request_timeout_seconds = config.request_timeout_seconds
        self._clock = config.clock or (lambda: datetime.now(UTC))

        self._turn_engine = TurnEngine(
            provider=self._provider,
            registry=self._registry,
            keep_last=config.history_window_messages,
            max_cycles=config.max_cycles,
            max_tool_result_chars=config.max_tool_result_chars,
            on_tool_started=self._emit_tool_started,
            on_tool_completed=self._record_tool_completed,
        )

    @property
    def tool_names(self) -> list[str]:
        return self._registry.names

    async def chat(self, session_id: str, user_message: str) -> TurnResult:
        with logger.contextualize(session_id=session_id):
            return await self._chat(session_id, user_message)

    async def _chat(self, session_id: str, user_message: str) -> TurnResult:
        async with self._sessions.lock(session_id):
            history = await self._sessions.load(session_id)
            pending: list[Message] = [Message.user(user_message)]
            system_prompt = build_system_prompt(
                session_id,
                now=self._clock(),
                tool_names=self._registry.names,
            )
            logger.info(f"Session {session_id}: new message ({len(history)} stored message(s))")
            try:
                return await self._run_with_timeout(session_id, system_prompt, history, pending)
            finally:
                await self._sessions.append(session_id, complete_prefix(pending))

    async def _run_with_timeout(
        self,
        session_id: str,
        system_prompt: str,
        history: list[Message],
        pending: list[Message],
    ) -> TurnResult:
        run = self._turn_engine.run(
            session_id=session_id,
            system_prompt=system_prompt,
            history=history,
            pending=pending,
        )
        if not self._request_timeout_seconds or self._request_timeout_seconds <= 0:
            return await run
        try:
            return await asyncio.wait_for(run, timeout=self._request_timeout_seconds)
        except asyncio.TimeoutError as ex:
            logger.error(f"Session {session_id}: request timed out after {self._request_timeout_seconds}s")
            raise OrchestrationTimeoutError(self._request_timeout_seconds) from ex

    def _emit_tool_started(self, session_id: str, tool_call_id: str, tool_name: str) -> None:
        logger.info(f"Session {session_id}: running {tool_name}")
        if self._event_emitter is not None:
            self._event_emitter.emit(
                session_id,
                "tool.started",
                {"tool_call_id": tool_call_id, "tool_name": tool_name},
            )

    def _record_tool_completed(
        self,
        session_id: str,
        *,
        tool_call_id: str,
        tool_name: str,
        tool_input: dict,
        result_text: str,
        is_error: bool,
    ) -> None:
        self._sessions.record_tool_call(
            session_id,
            tool_call_id=tool_call_id,
            tool_name=tool_name,
            tool_input=tool_input,
            result_text=result_text,
            is_error=is_error,
        )
        if self._event_emitter is not None:
            self._event_emitter.emit(
                session_id,
                "tool.completed",
                {"tool_call_id": tool_call_id, "tool_name": tool_name, "is_error": is_error},
            )

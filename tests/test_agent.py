import asyncio
import unittest
from datetime import UTC, datetime

from docuchat_agent.agent import Agent
from docuchat_agent.agent_config import AgentConfig
from docuchat_agent.errors import ModelInvocationError, OrchestrationLimitError, OrchestrationTimeoutError
from docuchat_agent.memory import EventEmitter, MemoryStore, SessionStore
from docuchat_agent.tool_registry import ToolRegistry
from tests.fakes import EchoTool, ScriptedProvider, text_turn, tool_turn


class AgentTests(unittest.TestCase):
    def setUp(self) -> None:
        self._store = MemoryStore(":memory:")
        self._events = EventEmitter(self._store)
        self._sessions = SessionStore(self._store, self._events)

    def tearDown(self) -> None:
        self._store.close()

    def _agent(self, provider, tools=(), **overrides) -> Agent:
        return Agent(
            AgentConfig(
                provider=provider,
                registry=ToolRegistry(tools),
                session_store=self._sessions,
                event_emitter=self._events,
                clock=lambda: datetime(2026, 3, 2, 9, 30, tzinfo=UTC),
                **overrides,
            )
        )

    def test_chat_persists_user_and_answer(self) -> None:
        agent = self._agent(ScriptedProvider([text_turn("4")]))

        result = asyncio.run(agent.chat("s1", "What's 2+2?"))

        self.assertEqual("4", result.answer)
        stored = asyncio.run(self._sessions.load("s1"))
        self.assertEqual([("user", "What's 2+2?"), ("assistant", "4")], [(m.role, m.content) for m in stored])

    def test_follow_up_sees_previous_turn(self) -> None:
        provider = ScriptedProvider([text_turn("Hello Sam"), text_turn("Your name is Sam")])
        agent = self._agent(provider)

        asyncio.run(agent.chat("s1", "I'm Sam"))
        asyncio.run(agent.chat("s1", "What's my name?"))

        window = provider.calls[1]["messages"]
        self.assertEqual(["I'm Sam", "Hello Sam", "What's my name?"], [m.content for m in window])

    def test_system_prompt_carries_session_and_time(self) -> None:
        provider = ScriptedProvider([text_turn("ok")])
        agent = self._agent(provider)

        asyncio.run(agent.chat("s-42", "hi"))

        prompt = provider.calls[0]["system_prompt"]
        self.assertIn("Session ID: s-42", prompt)
        self.assertIn("Mon, 02 Mar 2026 09:30:00", prompt)

    def test_sessions_do_not_share_history(self) -> None:
        provider = ScriptedProvider([text_turn("a"), text_turn("b")])
        agent = self._agent(provider)

        asyncio.run(agent.chat("A", "secret from A"))
        asyncio.run(agent.chat("B", "hello from B"))

        self.assertEqual(["hello from B"], [m.content for m in provider.calls[1]["messages"]])

    def test_tool_cycle_persisted_and_audited(self) -> None:
        provider = ScriptedProvider([tool_turn(("c1", "echo", {"text": "x"})), text_turn("done")])
        agent = self._agent(provider, tools=[EchoTool()])

        asyncio.run(agent.chat("s1", "go"))

        stored = asyncio.run(self._sessions.load("s1"))
        self.assertEqual(["user", "assistant", "tool", "assistant"], [m.role for m in stored])
        row = self._store.execute("SELECT tool_name, result_text FROM tool_calls").fetchone()
        self.assertEqual(("echo", "echo:x"), (row["tool_name"], row["result_text"]))
        types = [e["type"] for e in self._events.list_events("s1")]
        self.assertIn("tool.started", types)
        self.assertIn("tool.completed", types)

    def test_model_failure_keeps_user_message(self) -> None:
        agent = self._agent(ScriptedProvider([ModelInvocationError("failed", 500, "upstream")]))

        with self.assertRaises(ModelInvocationError):
            asyncio.run(agent.chat("s1", "hello"))

        stored = asyncio.run(self._sessions.load("s1"))
        self.assertEqual(["hello"], [m.content for m in stored])

    def test_cycle_limit_persists_complete_cycles(self) -> None:
        provider = ScriptedProvider([tool_turn(("c1", "echo", {"text": "x"}))])
        agent = self._agent(provider, tools=[EchoTool()], max_cycles=2)

        with self.assertRaises(OrchestrationLimitError):
            asyncio.run(agent.chat("s1", "loop"))

        stored = asyncio.run(self._sessions.load("s1"))
        self.assertEqual(["user", "assistant", "tool", "assistant", "tool"], [m.role for m in stored])

    def test_timeout_raises_classified_error(self) -> None:
        agent = self._agent(ScriptedProvider([text_turn("late")], delay=1.0), request_timeout_seconds=0.05)

        with self.assertRaises(OrchestrationTimeoutError):
            asyncio.run(agent.chat("s1", "hello"))

        stored = asyncio.run(self._sessions.load("s1"))
        self.assertEqual(["user"], [m.role for m in stored])

    def test_tool_names(self) -> None:
        agent = self._agent(ScriptedProvider([text_turn("ok")]), tools=[EchoTool("a"), EchoTool("b")])
        self.assertEqual(["a", "b"], agent.tool_names)


if __name__ == "__main__":
    unittest.main()

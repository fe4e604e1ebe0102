import asyncio
import gc

from docuchat_agent.memory import MemoryStore, SessionStore
from docuchat_agent.messages import Message, ToolCall
from tests.memory.base import MemoryStoreTestCase


class SessionStoreTests(MemoryStoreTestCase):
    def test_unseen_session_loads_empty(self) -> None:
        self.assertEqual([], asyncio.run(self._sessions.load("nobody")))
        self.assertIsNone(self._sessions.get_session("nobody"))

    def test_append_then_load_preserves_order_and_tool_calls(self) -> None:
        messages = [
            Message.user("Book a meeting"),
            Message.assistant("", [ToolCall(id="c1", name="create_calendar_event", arguments={"summary": "Sync"})]),
            Message.tool_result("c1", "The meeting has been created."),
            Message.assistant("Done."),
        ]
        asyncio.run(self._sessions.append("s1", messages))

        loaded = asyncio.run(self._sessions.load("s1"))

        self.assertEqual(messages, loaded)
        self.assertIsNotNone(self._sessions.get_session("s1"))

    def test_appends_accumulate(self) -> None:
        asyncio.run(self._sessions.append("s1", [Message.user("one"), Message.assistant("1")]))
        asyncio.run(self._sessions.append("s1", [Message.user("two"), Message.assistant("2")]))

        loaded = asyncio.run(self._sessions.load("s1"))

        self.assertEqual(["one", "1", "two", "2"], [m.content for m in loaded])

    def test_sessions_are_isolated(self) -> None:
        asyncio.run(self._sessions.append("A", [Message.user("from A")]))
        asyncio.run(self._sessions.append("B", [Message.user("from B")]))

        self.assertEqual(["from A"], [m.content for m in asyncio.run(self._sessions.load("A"))])
        self.assertEqual(["from B"], [m.content for m in asyncio.run(self._sessions.load("B"))])

    def test_empty_append_creates_nothing(self) -> None:
        asyncio.run(self._sessions.append("s1", []))
        self.assertIsNone(self._sessions.get_session("s1"))

    def test_append_emits_session_and_message_events(self) -> None:
        asyncio.run(self._sessions.append("s1", [Message.user("one")]))
        asyncio.run(self._sessions.append("s1", [Message.assistant("1")]))

        types = [e["type"] for e in self._events.list_events("s1")]

        self.assertEqual(["session.started", "message.appended", "message.appended"], types)

    def test_record_tool_call(self) -> None:
        self._sessions.record_tool_call(
            "s1",
            tool_call_id="c1",
            tool_name="web_search",
            tool_input={"query": "weather"},
            result_text="Sunny",
            is_error=False,
        )
        row = self._store.execute("SELECT * FROM tool_calls WHERE session_id = ?", ("s1",)).fetchone()
        self.assertEqual("web_search", row["tool_name"])
        self.assertEqual('{"query": "weather"}', row["input_json"])
        self.assertEqual(0, row["is_error"])

    def test_lock_is_per_session(self) -> None:
        self.assertIs(self._sessions.lock("s1"), self._sessions.lock("s1"))
        self.assertIsNot(self._sessions.lock("s1"), self._sessions.lock("s2"))

    def test_unreferenced_locks_are_released(self) -> None:
        held = self._sessions.lock("held")
        for i in range(100):
            self._sessions.lock(f"s{i}")
        gc.collect()

        self.assertEqual(["held"], list(self._sessions._locks))
        self.assertIs(held, self._sessions.lock("held"))

    def test_lock_shared_while_contended(self) -> None:
        async def scenario() -> list[str]:
            order: list[str] = []

            async def run(tag: str) -> None:
                async with self._sessions.lock("s1"):
                    order.append(f"{tag}-start")
                    await asyncio.sleep(0.01)
                    order.append(f"{tag}-end")

            await asyncio.gather(run("a"), run("b"))
            return order

        self.assertEqual(["a-start", "a-end", "b-start", "b-end"], asyncio.run(scenario()))

    def test_history_survives_reopen(self) -> None:
        path = str(self._tmp_dir / "reopen.db")
        first = MemoryStore(path)
        asyncio.run(SessionStore(first).append("s1", [Message.user("persisted")]))
        first.close()

        second = MemoryStore(path)
        try:
            loaded = asyncio.run(SessionStore(second).load("s1"))
        finally:
            second.close()

        self.assertEqual(["persisted"], [m.content for m in loaded])

import asyncio
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from docuchat_agent.history import model_window
from docuchat_agent.messages import Message, ToolCall
from docuchat_agent.providers.anthropic_provider import AnthropicProvider, _to_anthropic_messages
from docuchat_agent.tool_registry import ToolSpec


class ToAnthropicMessagesTests(unittest.TestCase):
    def test_tool_results_folded_into_one_user_turn(self) -> None:
        result = _to_anthropic_messages([
            Message.user("q"),
            Message.assistant("checking", [ToolCall(id="c1", name="a"), ToolCall(id="c2", name="b")]),
            Message.tool_result("c1", "r1"),
            Message.tool_result("c2", "r2"),
        ])

        self.assertEqual(["user", "assistant", "user"], [m["role"] for m in result])
        self.assertEqual(
            [{"type": "text", "text": "checking"},
             {"type": "tool_use", "id": "c1", "name": "a", "input": {}},
             {"type": "tool_use", "id": "c2", "name": "b", "input": {}}],
            result[1]["content"],
        )
        self.assertEqual(["c1", "c2"], [b["tool_use_id"] for b in result[2]["content"]])

    def test_leading_assistant_dropped(self) -> None:
        result = _to_anthropic_messages([Message.assistant("earlier"), Message.user("now")])
        self.assertEqual([{"role": "user", "content": "now"}], result)

    def test_trimmed_window_opening_mid_cycle_starts_at_user_turn(self) -> None:
        history = [Message.user(f"q{i}") if i % 2 == 0 else Message.assistant(f"a{i}") for i in range(7)]
        history += [
            Message.assistant("", [ToolCall(id="c1", name="web_search")]),
            Message.tool_result("c1", "sunny"),
            Message.assistant("done"),
            Message.user("next question"),
        ]
        window = model_window(history, 4)
        self.assertEqual(["assistant", "tool", "assistant", "user"], [m.role for m in window])

        result = _to_anthropic_messages(window)

        self.assertEqual([{"role": "user", "content": "next question"}], result)


class AnthropicProviderTests(unittest.TestCase):
    def test_complete_parses_text_and_tool_use(self) -> None:
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="Let me search."),
                SimpleNamespace(type="tool_use", id="tu1", name="web_search", input={"query": "x"}),
            ],
            usage=SimpleNamespace(input_tokens=20, output_tokens=8),
            stop_reason="tool_use",
        )
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=response)
        provider = AnthropicProvider("key", model="claude", max_tokens=100, client=client)
        spec = ToolSpec(name="web_search", description="Search", input_schema={"type": "object"})

        turn = asyncio.run(provider.complete("sys", [Message.user("q")], [spec]))

        self.assertEqual("Let me search.", turn.content)
        self.assertEqual("web_search", turn.tool_calls[0].name)
        self.assertEqual({"query": "x"}, turn.tool_calls[0].arguments)
        self.assertEqual(20, turn.usage.input_tokens)
        kwargs = client.messages.create.call_args.kwargs
        self.assertEqual("sys", kwargs["system"])
        self.assertEqual("web_search", kwargs["tools"][0]["name"])


if __name__ == "__main__":
    unittest.main()

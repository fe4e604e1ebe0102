import unittest

from loguru import logger

from docuchat_agent.history import drop_leading_tool_results, for_model_call, model_window
from docuchat_agent.messages import Message, ToolCall


def _conversation(count: int) -> list[Message]:
    return [
        Message.user(f"u{i}") if i % 2 == 0 else Message.assistant(f"a{i}")
        for i in range(count)
    ]


class ForModelCallTests(unittest.TestCase):
    def test_returns_last_n_of_longer_history(self) -> None:
        history = _conversation(25)
        window = for_model_call(history, 10)
        self.assertEqual(10, len(window))
        self.assertEqual([m.id for m in history[-10:]], [m.id for m in window])

    def test_short_history_returned_unchanged(self) -> None:
        history = _conversation(4)
        self.assertEqual(history, for_model_call(history, 10))

    def test_exactly_n_returned_unchanged(self) -> None:
        history = _conversation(10)
        self.assertEqual(history, for_model_call(history, 10))

    def test_does_not_mutate_history(self) -> None:
        history = _conversation(25)
        ids = [m.id for m in history]
        for_model_call(history, 5)
        self.assertEqual(ids, [m.id for m in history])

    def test_default_keep_last_is_ten(self) -> None:
        self.assertEqual(10, len(for_model_call(_conversation(30))))

    def test_rejects_non_positive_keep_last(self) -> None:
        with self.assertRaises(ValueError):
            for_model_call(_conversation(3), 0)


class DropLeadingToolResultsTests(unittest.TestCase):
    def test_drops_results_whose_request_was_trimmed(self) -> None:
        window = [
            Message.tool_result("c1", "r1"),
            Message.tool_result("c2", "r2"),
            Message.assistant("done"),
            Message.user("next"),
        ]
        result = drop_leading_tool_results(window)
        self.assertEqual(["assistant", "user"], [m.role for m in result])

    def test_keeps_window_that_starts_with_request(self) -> None:
        window = [
            Message.assistant("", [ToolCall(id="c1", name="echo")]),
            Message.tool_result("c1", "r1"),
        ]
        self.assertEqual(window, drop_leading_tool_results(window))

    def test_model_window_trims_then_drops_orphans(self) -> None:
        history = [
            Message.user("q"),
            Message.assistant("", [ToolCall(id="c1", name="echo")]),
            Message.tool_result("c1", "r1"),
            Message.assistant("answer"),
        ]
        window = model_window(history, 2)
        self.assertEqual(["assistant"], [m.role for m in window])
        self.assertEqual("answer", window[0].content)

    def test_window_of_only_orphaned_results_is_empty_and_warned(self) -> None:
        calls = [ToolCall(id=f"c{i}", name="echo") for i in range(3)]
        history = [
            Message.user("q"),
            Message.assistant("", calls),
            *[Message.tool_result(c.id, "r") for c in calls],
        ]
        records: list = []
        sink_id = logger.add(records.append, level="WARNING")
        try:
            window = model_window(history, 3)
        finally:
            logger.remove(sink_id)

        self.assertEqual([], window)
        self.assertEqual(1, len(records))
        self.assertIn("tool results whose request was trimmed", records[0])


if __name__ == "__main__":
    unittest.main()

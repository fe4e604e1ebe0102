import unittest

from fastapi.testclient import TestClient

from docuchat_agent.agent import Agent
from docuchat_agent.agent_config import AgentConfig
from docuchat_agent.bootstrap import AppRuntime
from docuchat_agent.errors import ModelInvocationError, RateLimitOrPayloadTooLargeError
from docuchat_agent.ingestion import DocumentIngestor
from docuchat_agent.memory import MemoryStore, SessionStore
from docuchat_agent.server import LIMIT_FALLBACK_MESSAGE, create_app
from docuchat_agent.tool_registry import ToolRegistry
from docuchat_agent.tools.documents.vector_index import InMemoryVectorIndex
from tests.fakes import EchoTool, ScriptedProvider, text_turn, tool_turn


class ChatEndpointTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._store = MemoryStore(":memory:")
        self.index = InMemoryVectorIndex()

    def tearDown(self) -> None:
        self._store.close()

    def _client(self, provider, tools=(), **agent_overrides) -> TestClient:
        agent = Agent(
            AgentConfig(
                provider=provider,
                registry=ToolRegistry(tools),
                session_store=SessionStore(self._store),
                **agent_overrides,
            )
        )
        runtime = AppRuntime(
            agent=agent,
            ingestor=DocumentIngestor(self.index, upload_directory=None, max_upload_bytes=1024),
        )
        return TestClient(create_app(runtime))


class ChatEndpointTests(ChatEndpointTestCase):
    def test_direct_answer(self) -> None:
        provider = ScriptedProvider([text_turn("4")])

        response = self._client(provider).post("/api/chat", json={"message": "What's 2+2?", "sessionId": "s1"})

        self.assertEqual(200, response.status_code)
        self.assertEqual({"success": True, "message": "4"}, response.json())
        self.assertEqual(1, len(provider.calls))

    def test_whitespace_message_rejected(self) -> None:
        provider = ScriptedProvider([text_turn("unused")])

        response = self._client(provider).post("/api/chat", json={"message": "   ", "sessionId": "s1"})

        self.assertEqual(400, response.status_code)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual("Message cannot be empty", body["message"])
        self.assertEqual([], provider.calls)

    def test_message_length_boundary(self) -> None:
        client = self._client(ScriptedProvider([text_turn("ok")]))

        too_long = client.post("/api/chat", json={"message": "a" * 10_001, "sessionId": "s1"})
        at_limit = client.post("/api/chat", json={"message": "a" * 10_000, "sessionId": "s1"})

        self.assertEqual(400, too_long.status_code)
        self.assertEqual(200, at_limit.status_code)

    def test_missing_session_rejected(self) -> None:
        client = self._client(ScriptedProvider([text_turn("ok")]))

        for body in ({"message": "hi"}, {"message": "hi", "sessionId": ""}):
            response = client.post("/api/chat", json=body)
            self.assertEqual(400, response.status_code)
            self.assertEqual("Session ID is required", response.json()["message"])

    def test_invalid_json_rejected(self) -> None:
        client = self._client(ScriptedProvider([text_turn("ok")]))
        response = client.post("/api/chat", content=b"{not json", headers={"Content-Type": "application/json"})
        self.assertEqual(400, response.status_code)

    def test_rate_limit_maps_to_429(self) -> None:
        provider = ScriptedProvider([RateLimitOrPayloadTooLargeError("Busy, try again.", 429, "rate limit")])

        response = self._client(provider).post("/api/chat", json={"message": "hi", "sessionId": "s1"})

        self.assertEqual(429, response.status_code)
        self.assertEqual(
            {"success": False, "error": "Rate limit exceeded", "message": "Busy, try again."},
            response.json(),
        )

    def test_generic_model_error_maps_to_500(self) -> None:
        provider = ScriptedProvider([ModelInvocationError("The AI service failed.", 401, "bad key")])

        response = self._client(provider).post("/api/chat", json={"message": "hi", "sessionId": "s1"})

        self.assertEqual(500, response.status_code)
        self.assertEqual("The AI service failed.", response.json()["message"])

    def test_cycle_limit_maps_to_500_with_fallback(self) -> None:
        provider = ScriptedProvider([tool_turn(("c1", "echo", {"text": "x"}))])

        response = self._client(provider, tools=[EchoTool()], max_cycles=2).post(
            "/api/chat", json={"message": "loop", "sessionId": "s1"}
        )

        self.assertEqual(500, response.status_code)
        self.assertEqual(LIMIT_FALLBACK_MESSAGE, response.json()["message"])

    def test_calendar_request_injects_session(self) -> None:
        tool = EchoTool("create_calendar_event")
        provider = ScriptedProvider([
            tool_turn(("c1", "create_calendar_event", {"text": "Standup", "sessionId": "hallucinated"})),
            text_turn("Your meeting is booked."),
        ])

        response = self._client(provider, tools=[tool]).post(
            "/api/chat", json={"message": "Book a standup tomorrow at 10", "sessionId": "s1"}
        )

        self.assertEqual({"success": True, "message": "Your meeting is booked."}, response.json())
        self.assertEqual(1, len(tool.calls))
        self.assertEqual("s1", tool.calls[0].session_id)

    def test_usage_reported_in_headers(self) -> None:
        provider = ScriptedProvider([
            tool_turn(("c1", "echo", {"text": "hi"})),
            text_turn("done"),
        ])

        response = self._client(provider, tools=[EchoTool()]).post(
            "/api/chat", json={"message": "echo hi", "sessionId": "s1"}
        )

        self.assertEqual({"success": True, "message": "done"}, response.json())
        self.assertEqual("20", response.headers["X-Usage-Input-Tokens"])
        self.assertEqual("7", response.headers["X-Usage-Output-Tokens"])
        self.assertEqual("2", response.headers["X-Orchestration-Cycles"])

    def test_health_lists_tools(self) -> None:
        response = self._client(ScriptedProvider([text_turn("ok")]), tools=[EchoTool()]).get("/health")
        body = response.json()
        self.assertEqual("healthy", body["status"])
        self.assertEqual(["echo"], body["tools"])
        self.assertIn("timestamp", body)


class UploadEndpointTests(ChatEndpointTestCase):
    def test_text_upload_indexed_under_session(self) -> None:
        client = self._client(ScriptedProvider([text_turn("ok")]))

        response = client.post(
            "/api/upload-pdf",
            files={"file": ("notes.txt", b"The warranty lasts two years.", "text/plain")},
            data={"sessionId": "s1"},
        )

        self.assertEqual(200, response.status_code)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual("notes.txt", body["fileName"])
        self.assertEqual(1, body["totalChunks"])
        self.assertEqual("notes.txt-chunk-0", body["chunks"][0]["id"])

    def test_upload_requires_session(self) -> None:
        client = self._client(ScriptedProvider([text_turn("ok")]))
        response = client.post("/api/upload-pdf", files={"file": ("notes.txt", b"text", "text/plain")})
        self.assertEqual(400, response.status_code)

    def test_upload_requires_file(self) -> None:
        client = self._client(ScriptedProvider([text_turn("ok")]))
        response = client.post("/api/upload-pdf", data={"sessionId": "s1"})
        self.assertEqual(400, response.status_code)
        self.assertEqual("No file provided", response.json()["message"])

    def test_unsupported_type_rejected(self) -> None:
        client = self._client(ScriptedProvider([text_turn("ok")]))
        response = client.post(
            "/api/upload-pdf",
            files={"file": ("photo.png", b"\x89PNG", "image/png")},
            data={"sessionId": "s1"},
        )
        self.assertEqual(400, response.status_code)


class GoogleAuthEndpointTests(ChatEndpointTestCase):
    def test_callback_without_code_rejected(self) -> None:
        client = self._client(ScriptedProvider([text_turn("ok")]))
        response = client.get("/api/auth/google/callback", follow_redirects=False)
        self.assertEqual(400, response.status_code)
        self.assertEqual("No code provided", response.json()["message"])

    def test_connect_requires_session(self) -> None:
        client = self._client(ScriptedProvider([text_turn("ok")]))
        response = client.get("/api/auth/google", follow_redirects=False)
        self.assertEqual(400, response.status_code)


if __name__ == "__main__":
    unittest.main()

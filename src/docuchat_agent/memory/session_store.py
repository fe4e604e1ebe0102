from __future__ import annotations

import asyncio
import json
import weakref
from collections.abc import Sequence

from loguru import logger

from docuchat_agent.memory.events import EventEmitter, utc_now
from docuchat_agent.memory.store import MemoryStore
from docuchat_agent.messages import Message, ToolCall


class SessionStore:
    """Persisted conversation history keyed strictly by session id.

    Sessions are created on first append and never deleted here. ``append`` writes
    all of its messages in one transaction, so concurrent appends never interleave.
    """

    def __init__(self, store: MemoryStore, events: EventEmitter | None = None):
        self._store = store
        self._events = events
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def lock(self, session_id: str) -> asyncio.Lock:
        """Per-session lock that serializes orchestration runs within this process.

        Entries live only while a caller holds or awaits the lock.
        """
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def get_session(self, session_id: str) -> dict | None:
        row = self._store.execute(
            "SELECT * FROM sessions WHERE id = ? LIMIT 1",
            (session_id,),
        ).fetchone()
        return dict(row) if row is not None else None

    async def load(self, session_id: str) -> list[Message]:
        rows = self._store.execute(
            """
            SELECT id, role, content, tool_calls_json, tool_call_id
            FROM messages
            WHERE session_id = ?
            ORDER BY seq ASC
            """,
            (session_id,),
        ).fetchall()
        messages = [self._row_to_message(row) for row in rows]
        logger.debug(f"Loaded {len(messages)} message(s) for session {session_id}")
        return messages

    async def append(self, session_id: str, messages: Sequence[Message]) -> None:
        if not messages:
            return

        now = utc_now()
        created = False
        appended: list[tuple[str, int, str]] = []
        with self._store.lock:
            try:
                cursor = self._store.execute(
                    """
                    INSERT OR IGNORE INTO sessions (id, created_at, updated_at, metadata_json)
                    VALUES (?, ?, ?, '{}')
                    """,
                    (session_id, now, now),
                )
                created = cursor.rowcount == 1
                row = self._store.execute(
                    "SELECT COALESCE(MAX(seq), 0) AS max_seq FROM messages WHERE session_id = ?",
                    (session_id,),
                ).fetchone()
                seq = int(row["max_seq"])
                params: list[tuple] = []
                for message in messages:
                    seq += 1
                    tool_calls_json = (
                        json.dumps([tc.to_dict() for tc in message.tool_calls], ensure_ascii=True)
                        if message.tool_calls
                        else None
                    )
                    params.append(
                        (
                            message.id,
                            session_id,
                            seq,
                            message.role,
                            message.content,
                            tool_calls_json,
                            message.tool_call_id,
                            now,
                        )
                    )
                    appended.append((message.id, seq, message.role))
                self._store.executemany(
                    """
                    INSERT INTO messages
                        (id, session_id, seq, role, content, tool_calls_json, tool_call_id, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    params,
                )
                self._store.execute(
                    "UPDATE sessions SET updated_at = ? WHERE id = ?",
                    (now, session_id),
                )
                self._store.commit()
            except Exception:
                self._store.rollback()
                raise

        logger.debug(f"Appended {len(messages)} message(s) to session {session_id}")
        if self._events is not None:
            if created:
                self._events.emit(session_id, "session.started", {"session_id": session_id})
            for message_id, seq, role in appended:
                self._events.emit(
                    session_id,
                    "message.appended",
                    {"session_id": session_id, "message_id": message_id, "seq": seq, "role": role},
                )

    def record_tool_call(
        self,
        session_id: str,
        *,
        tool_call_id: str,
        tool_name: str,
        tool_input: dict,
        result_text: str,
        is_error: bool,
    ) -> None:
        with self._store.lock:
            self._store.execute(
                """
                INSERT INTO tool_calls (id, session_id, tool_name, input_json, result_text, is_error, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    tool_call_id,
                    session_id,
                    tool_name,
                    json.dumps(tool_input, ensure_ascii=True, default=str),
                    result_text,
                    1 if is_error else 0,
                    utc_now(),
                ),
            )
            self._store.commit()

    def _row_to_message(self, row) -> Message:
        tool_calls: tuple[ToolCall, ...] = ()
        if row["tool_calls_json"]:
            tool_calls = tuple(ToolCall.from_dict(tc) for tc in json.loads(row["tool_calls_json"]))
        return Message(
            role=row["role"],
            content=row["content"],
            tool_calls=tool_calls,
            tool_call_id=row["tool_call_id"],
            id=row["id"],
        )

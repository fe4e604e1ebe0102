from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from docuchat_agent.memory.events import utc_now
from docuchat_agent.memory.store import MemoryStore


@dataclass(frozen=True)
class StoredToken:
    session_id: str
    access_token: str
    refresh_token: str | None
    expiry: datetime | None


class TokenStore:
    """Google OAuth tokens per session id."""

    def __init__(self, store: MemoryStore):
        self._store = store

    def get(self, session_id: str) -> StoredToken | None:
        row = self._store.execute(
            "SELECT * FROM user_tokens WHERE session_id = ? LIMIT 1",
            (session_id,),
        ).fetchone()
        if row is None:
            return None
        expiry = datetime.fromisoformat(row["expiry"]) if row["expiry"] else None
        return StoredToken(
            session_id=row["session_id"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            expiry=expiry,
        )

    def save(
        self,
        session_id: str,
        *,
        access_token: str,
        refresh_token: str | None = None,
        expiry: datetime | None = None,
    ) -> None:
        """Insert or update. A missing refresh token keeps the stored one."""
        with self._store.lock:
            self._store.execute(
                """
                INSERT INTO user_tokens (session_id, access_token, refresh_token, expiry, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                    access_token = excluded.access_token,
                    refresh_token = COALESCE(excluded.refresh_token, user_tokens.refresh_token),
                    expiry = excluded.expiry,
                    updated_at = excluded.updated_at
                """,
                (
                    session_id,
                    access_token,
                    refresh_token,
                    expiry.isoformat() if expiry else None,
                    utc_now(),
                ),
            )
            self._store.commit()

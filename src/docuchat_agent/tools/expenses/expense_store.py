from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime
from uuid import uuid4

from docuchat_agent.memory.events import utc_now
from docuchat_agent.memory.store import MemoryStore


@dataclass(frozen=True)
class Expense:
    id: str
    amount: float
    category: str
    description: str | None
    date: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class NewExpense:
    amount: float
    category: str
    description: str | None = None
    date: str | None = None


def normalize_date(value: str) -> str:
    """Accept an ISO date or datetime and return ``YYYY-MM-DD``."""
    text = value.strip()
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError:
        return datetime.fromisoformat(text).date().isoformat()


class ExpenseStore:
    """Expense rows owned by a session id."""

    def __init__(self, store: MemoryStore):
        self._store = store

    def add_many(self, session_id: str, expenses: list[NewExpense], *, today: date | None = None) -> list[Expense]:
        default_date = (today or date.today()).isoformat()
        created = [
            Expense(
                id=str(uuid4()),
                amount=float(e.amount),
                category=e.category,
                description=e.description,
                date=normalize_date(e.date) if e.date else default_date,
            )
            for e in expenses
        ]
        now = utc_now()
        with self._store.lock:
            try:
                self._store.executemany(
                    """
                    INSERT INTO expenses (id, session_id, amount, category, description, date, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    [(e.id, session_id, e.amount, e.category, e.description, e.date, now) for e in created],
                )
                self._store.commit()
            except Exception:
                self._store.rollback()
                raise
        return created

    def query(
        self,
        session_id: str,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        category: str | None = None,
        limit: int = 50,
    ) -> tuple[list[Expense], int]:
        """Most recent first. Returns the page and the total number of matches."""
        where = ["session_id = ?"]
        params: list = [session_id]
        if start_date:
            where.append("date >= ?")
            params.append(normalize_date(start_date))
        if end_date:
            where.append("date <= ?")
            params.append(normalize_date(end_date))
        if category:
            where.append("LOWER(category) LIKE ?")
            params.append(f"%{category.lower()}%")
        clause = " AND ".join(where)

        total = self._store.execute(
            f"SELECT COUNT(*) AS n FROM expenses WHERE {clause}",
            tuple(params),
        ).fetchone()["n"]
        rows = self._store.execute(
            f"""
            SELECT id, amount, category, description, date
            FROM expenses
            WHERE {clause}
            ORDER BY date DESC, created_at DESC
            LIMIT ?
            """,
            (*params, limit),
        ).fetchall()
        return [Expense(**dict(row)) for row in rows], int(total)

    def delete(self, session_id: str, expense_id: str) -> bool:
        with self._store.lock:
            cursor = self._store.execute(
                "DELETE FROM expenses WHERE id = ? AND session_id = ?",
                (expense_id, session_id),
            )
            self._store.commit()
        return cursor.rowcount > 0

import asyncio
import json
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

from docuchat_agent.tool import SessionScopedInput, schema_for
from docuchat_agent.tools.expenses.expense_store import ExpenseStore


class ListExpensesInput(SessionScopedInput):
    start_date: str | None = Field(
        default=None, alias="startDate", description="Filter expenses on or after this date (ISO format)."
    )
    end_date: str | None = Field(
        default=None, alias="endDate", description="Filter expenses on or before this date (ISO format)."
    )
    category: str | None = Field(default=None, description="Filter by category.")


class ExpenseListTool:
    def __init__(self, store: ExpenseStore, *, limit: int = 50):
        self._store = store
        self._limit = limit

    @property
    def name(self) -> str:
        return "get_expenses"

    @property
    def description(self) -> str:
        return (
            "Retrieve the user's expenses, most recent first. Use this when the user asks "
            "to see their expenses, for a summary, or for a chart."
        )

    @property
    def input_model(self) -> type[BaseModel]:
        return ListExpensesInput

    @property
    def input_schema(self) -> dict[str, Any]:
        return schema_for(ListExpensesInput)

    @property
    def requires_session(self) -> bool:
        return True

    async def execute(self, tool_input: ListExpensesInput) -> str:
        try:
            expenses, total = await asyncio.to_thread(
                self._store.query,
                tool_input.session_id,
                start_date=tool_input.start_date,
                end_date=tool_input.end_date,
                category=tool_input.category,
                limit=self._limit,
            )
        except Exception as ex:
            logger.error(f"get_expenses error: {ex}")
            return f"Error retrieving expenses: {ex}"

        if not expenses:
            return "No expenses found for the given criteria."

        result: dict[str, Any] = {
            "expenses": [e.to_dict() for e in expenses],
            "totalFound": total,
            "limit": self._limit,
        }
        if total > self._limit:
            result["note"] = f"Showing top {self._limit} most recent expenses out of {total}."
        return json.dumps(result)

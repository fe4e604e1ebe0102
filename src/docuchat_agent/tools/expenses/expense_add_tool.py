import asyncio
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, field_validator

from docuchat_agent.tool import SessionScopedInput, ToolInput, schema_for
from docuchat_agent.tools.expenses.expense_store import ExpenseStore, NewExpense, normalize_date


class ExpenseItem(ToolInput):
    amount: float = Field(description="The amount of the expense.")
    category: str = Field(
        min_length=1,
        description="The category of the expense (e.g., Food, Transport, Shopping).",
    )
    description: str | None = Field(default=None, description="A brief description of the expense.")
    date: str | None = Field(
        default=None,
        description="The date of the expense in ISO format (YYYY-MM-DD). Defaults to today.",
    )

    @field_validator("date")
    @classmethod
    def _iso_date(cls, value: str | None) -> str | None:
        return normalize_date(value) if value else None


class AddExpensesInput(SessionScopedInput):
    expenses: list[ExpenseItem] = Field(min_length=1, description="List of expenses to add.")


class ExpenseAddTool:
    def __init__(self, store: ExpenseStore):
        self._store = store

    @property
    def name(self) -> str:
        return "add_expense"

    @property
    def description(self) -> str:
        return (
            "Add one or more expenses. Use this when the user mentions spending money "
            "or buying something."
        )

    @property
    def input_model(self) -> type[BaseModel]:
        return AddExpensesInput

    @property
    def input_schema(self) -> dict[str, Any]:
        return schema_for(AddExpensesInput)

    @property
    def requires_session(self) -> bool:
        return True

    async def execute(self, tool_input: AddExpensesInput) -> str:
        items = [
            NewExpense(amount=e.amount, category=e.category, description=e.description, date=e.date)
            for e in tool_input.expenses
        ]
        try:
            created = await asyncio.to_thread(self._store.add_many, tool_input.session_id, items)
        except Exception as ex:
            logger.error(f"add_expense error: {ex}")
            return f"Error adding expenses: {ex}"
        return f"Successfully added {len(created)} expenses."

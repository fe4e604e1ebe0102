import asyncio
from typing import Any

from pydantic import BaseModel, Field

from docuchat_agent.tool import SessionScopedInput, schema_for
from docuchat_agent.tools.expenses.expense_store import ExpenseStore


class DeleteExpenseInput(SessionScopedInput):
    expense_id: str = Field(alias="expenseId", min_length=1, description="The ID of the expense to delete.")


class ExpenseDeleteTool:
    def __init__(self, store: ExpenseStore):
        self._store = store

    @property
    def name(self) -> str:
        return "delete_expense"

    @property
    def description(self) -> str:
        return "Delete one of the user's expenses by ID (use get_expenses to find the ID)."

    @property
    def input_model(self) -> type[BaseModel]:
        return DeleteExpenseInput

    @property
    def input_schema(self) -> dict[str, Any]:
        return schema_for(DeleteExpenseInput)

    @property
    def requires_session(self) -> bool:
        return True

    async def execute(self, tool_input: DeleteExpenseInput) -> str:
        deleted = await asyncio.to_thread(self._store.delete, tool_input.session_id, tool_input.expense_id)
        if not deleted:
            return f"Error: expense {tool_input.expense_id} not found."
        return "Expense deleted successfully."

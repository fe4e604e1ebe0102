import asyncio
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

from docuchat_agent.tool import SessionScopedInput, schema_for
from docuchat_agent.tools.calendar.calendar_auth import CalendarServiceFactory


class DeleteEventInput(SessionScopedInput):
    id: str = Field(min_length=1, description="The ID of the event to delete.")


class CalendarDeleteEventTool:
    def __init__(self, services: CalendarServiceFactory):
        self._services = services

    @property
    def name(self) -> str:
        return "delete_calendar_event"

    @property
    def description(self) -> str:
        return "Delete a Google Calendar event by ID (use get-events to find the ID)."

    @property
    def input_model(self) -> type[BaseModel]:
        return DeleteEventInput

    @property
    def input_schema(self) -> dict[str, Any]:
        return schema_for(DeleteEventInput)

    @property
    def requires_session(self) -> bool:
        return True

    async def execute(self, tool_input: DeleteEventInput) -> str:
        try:
            cal = await self._services.get_service(tool_input.session_id)
            request = cal.events().delete(calendarId="primary", eventId=tool_input.id)
            await asyncio.to_thread(request.execute)
            return f"Event with ID {tool_input.id} deleted successfully"
        except Exception as ex:
            logger.error(f"delete_calendar_event error: {ex}")
            return f"Error deleting event: {ex}"

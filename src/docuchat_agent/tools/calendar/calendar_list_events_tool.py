import asyncio
import json
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

from docuchat_agent.tool import SessionScopedInput, schema_for
from docuchat_agent.tools.calendar.calendar_auth import CalendarServiceFactory

_MAX_RESULTS = 10


class ListEventsInput(SessionScopedInput):
    q: str | None = Field(default=None, description="Query string to search events.")
    time_min: str | None = Field(default=None, alias="timeMin", description="Start time (ISO string).")
    time_max: str | None = Field(default=None, alias="timeMax", description="End time (ISO string).")


class CalendarListEventsTool:
    def __init__(self, services: CalendarServiceFactory):
        self._services = services

    @property
    def name(self) -> str:
        return "get-events"

    @property
    def description(self) -> str:
        return (
            "Get Google Calendar events, optionally filtered by a free-text query "
            "and a time range. Returns id, summary, start, end and links."
        )

    @property
    def input_model(self) -> type[BaseModel]:
        return ListEventsInput

    @property
    def input_schema(self) -> dict[str, Any]:
        return schema_for(ListEventsInput)

    @property
    def requires_session(self) -> bool:
        return True

    async def execute(self, tool_input: ListEventsInput) -> str:
        try:
            cal = await self._services.get_service(tool_input.session_id)

            kwargs: dict[str, Any] = {
                "calendarId": "primary",
                "maxResults": _MAX_RESULTS,
                "singleEvents": True,
                "orderBy": "startTime",
            }
            if tool_input.q:
                kwargs["q"] = tool_input.q
            if tool_input.time_min:
                kwargs["timeMin"] = tool_input.time_min
            if tool_input.time_max:
                kwargs["timeMax"] = tool_input.time_max

            response = await asyncio.to_thread(cal.events().list(**kwargs).execute)
            events = response.get("items", [])

            if not events:
                return "No events found."

            return json.dumps(
                [
                    {
                        "id": event.get("id"),
                        "summary": event.get("summary"),
                        "start": event.get("start"),
                        "end": event.get("end"),
                        "link": event.get("htmlLink"),
                        "meetLink": event.get("hangoutLink"),
                    }
                    for event in events
                ]
            )

        except Exception as ex:
            logger.error(f"get-events error: {ex}")
            return f"Error listing events: {ex}"

import asyncio
from typing import Any
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, Field

from docuchat_agent.tool import SessionScopedInput, ToolInput, schema_for
from docuchat_agent.tools.calendar.calendar_auth import CalendarServiceFactory


class EventTime(ToolInput):
    date_time: str = Field(alias="dateTime", description="The date time of the event in ISO 8601.")
    time_zone: str = Field(alias="timeZone", description="Current IANA timezone string.")


class Attendee(ToolInput):
    email: str = Field(description="The email of the attendee.")
    display_name: str | None = Field(default=None, alias="displayName", description="The name of the attendee.")


class CreateEventInput(SessionScopedInput):
    summary: str = Field(min_length=1, description="The title of the event.")
    start: EventTime
    end: EventTime
    attendees: list[Attendee] | None = None


class CalendarCreateEventTool:
    def __init__(self, services: CalendarServiceFactory):
        self._services = services

    @property
    def name(self) -> str:
        return "create_calendar_event"

    @property
    def description(self) -> str:
        return (
            "Create a Google Calendar event with a Google Meet link. "
            "Invitations are sent to attendees."
        )

    @property
    def input_model(self) -> type[BaseModel]:
        return CreateEventInput

    @property
    def input_schema(self) -> dict[str, Any]:
        return schema_for(CreateEventInput)

    @property
    def requires_session(self) -> bool:
        return True

    async def execute(self, tool_input: CreateEventInput) -> str:
        try:
            cal = await self._services.get_service(tool_input.session_id)

            body: dict[str, Any] = {
                "summary": tool_input.summary,
                "start": tool_input.start.model_dump(by_alias=True),
                "end": tool_input.end.model_dump(by_alias=True),
                "conferenceData": {
                    "createRequest": {
                        "requestId": uuid4().hex,
                        "conferenceSolutionKey": {"type": "hangoutsMeet"},
                    }
                },
            }
            if tool_input.attendees:
                body["attendees"] = [a.model_dump(by_alias=True, exclude_none=True) for a in tool_input.attendees]

            request = cal.events().insert(
                calendarId="primary",
                sendUpdates="all",
                conferenceDataVersion=1,
                body=body,
            )
            created = await asyncio.to_thread(request.execute)

            return (
                "The meeting has been created.\n"
                f"  ID: {created.get('id', '')}\n"
                f"  Link: {created.get('htmlLink', '')}\n"
                f"  Meet: {created.get('hangoutLink', '')}"
            )

        except Exception as ex:
            logger.error(f"create_calendar_event error: {ex}")
            return f"Error creating event: {ex}"

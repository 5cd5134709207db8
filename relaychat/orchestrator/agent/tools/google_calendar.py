"""Google Calendar tools: create, list, update, and delete events."""

from typing import Literal

from pydantic import BaseModel, Field

from relaychat.orchestrator.agent.tools.core import ActionSpec, register_integration

INTEGRATION = "Google Calendar"


class CreateEventInput(BaseModel):
    start_datetime: str = Field(
        description=(
            "Naive date/time (YYYY-MM-DDTHH:MM:SS) with NO offsets or Z, "
            "e.g. '2025-01-16T13:00:00'"
        )
    )
    summary: str | None = Field(default=None, description="Summary (title) of the event.")
    description: str | None = Field(default=None, description="Description of the event.")
    attendees: list[str] | None = Field(default=None, description="Attendee emails.")
    calendar_id: str = Field(
        default="primary",
        description="'primary' for the user's main calendar, or the calendar's email address.",
    )
    event_duration_hour: int = Field(default=0, ge=0, le=24, description="Hours (0-24).")
    event_duration_minutes: int = Field(
        default=30,
        ge=0,
        le=59,
        description="Minutes (0-59 only). Use event_duration_hour=1 instead of 60.",
    )
    timezone: str | None = Field(
        default=None, description="IANA timezone name, e.g. 'America/New_York'."
    )
    location: str | None = Field(default=None, description="Free-form location.")
    recurrence: list[str] | None = Field(
        default=None, description="RRULE, EXRULE, RDATE, or EXDATE lines."
    )
    create_meeting_room: bool | None = Field(
        default=None,
        description="Create a Google Meet link. Requires a Google Workspace account.",
    )
    send_updates: bool | None = Field(default=None, description="Notify attendees.")
    visibility: Literal["default", "public", "private", "confidential"] = "default"
    transparency: Literal["opaque", "transparent"] = "opaque"


class ListEventsInput(BaseModel):
    calendar_id: str = Field(default="primary", description="Calendar to list.")
    time_min: str | None = Field(
        default=None, description="RFC3339 lower bound for event end time."
    )
    time_max: str | None = Field(
        default=None, description="RFC3339 upper bound for event start time."
    )
    q: str | None = Field(default=None, description="Free-text search terms.")
    max_results: int = Field(default=25, ge=1, le=2500)
    single_events: bool = Field(
        default=True, description="Expand recurring events into instances."
    )
    order_by: Literal["startTime", "updated"] | None = None
    page_token: str | None = None


class UpdateEventInput(BaseModel):
    event_id: str = Field(description="ID of the event to update.")
    calendar_id: str = Field(default="primary")
    start_datetime: str = Field(description="New start date/time (YYYY-MM-DDTHH:MM:SS).")
    summary: str | None = None
    description: str | None = None
    attendees: list[str] | None = None
    event_duration_hour: int = Field(default=0, ge=0, le=24)
    event_duration_minutes: int = Field(default=30, ge=0, le=59)
    timezone: str | None = None
    location: str | None = None
    send_updates: bool | None = None


class DeleteEventInput(BaseModel):
    event_id: str = Field(description="ID of the event to delete.")
    calendar_id: str = Field(default="primary")


ACTIONS = [
    ActionSpec(
        name="googleCalendarCreateEvent",
        description=(
            "Create a calendar event in Google Calendar. Use this when the "
            "user wants to schedule an event."
        ),
        input_model=CreateEventInput,
        action="GOOGLECALENDAR_CREATE_EVENT",
        success_message="Calendar event created successfully",
    ),
    ActionSpec(
        name="googleCalendarListEvents",
        description="List events from a Google Calendar within an optional time range.",
        input_model=ListEventsInput,
        action="GOOGLECALENDAR_EVENTS_LIST",
        success_message="Calendar events retrieved successfully",
    ),
    ActionSpec(
        name="googleCalendarUpdateEvent",
        description="Update an existing Google Calendar event.",
        input_model=UpdateEventInput,
        action="GOOGLECALENDAR_UPDATE_EVENT",
        success_message="Calendar event updated successfully",
    ),
    ActionSpec(
        name="googleCalendarDeleteEvent",
        description="Delete an event from a Google Calendar.",
        input_model=DeleteEventInput,
        action="GOOGLECALENDAR_DELETE_EVENT",
        success_message="Calendar event deleted successfully",
    ),
]


def register(registry) -> None:
    """Register Google Calendar tools."""
    register_integration(registry, INTEGRATION, ACTIONS)

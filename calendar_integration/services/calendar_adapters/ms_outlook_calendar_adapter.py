import datetime
import logging
from collections.abc import Iterable
from typing import Any, ClassVar, TypedDict

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from calendar_integration.constants import CalendarProvider
from calendar_integration.exceptions import MSGraphAPIError, MSOutlookAdapterError
from calendar_integration.services.calendar_clients.ms_outlook_calendar_api_client import (
    MSOutlookCalendarAPIClient,
)
from calendar_integration.services.dataclasses import (
    BusyInterval,
    CalendarData,
    CalendarEventAdapterInputData,
    CalendarEventAdapterOutputData,
    SelectedCalendarData,
)
from calendar_integration.services.protocols.calendar_adapter import CalendarAdapter


logger = logging.getLogger(__name__)


class MSOutlookCredentialTypedDict(TypedDict):
    token: str
    refresh_token: str
    account_id: str


class MSOutlookCalendarAdapter(CalendarAdapter):
    provider = CalendarProvider.MICROSOFT
    # showAs values that don't block the time
    FREE_SHOW_AS: ClassVar[frozenset[str]] = frozenset({"free", "workingElsewhere"})

    def __init__(self, credentials_dict: MSOutlookCredentialTypedDict):
        ms_client_id = getattr(settings, "MS_CLIENT_ID", None)
        ms_client_secret = getattr(settings, "MS_CLIENT_SECRET", None)

        if not ms_client_id or not ms_client_secret:
            raise ImproperlyConfigured(
                "Microsoft Calendar integration requires MS_CLIENT_ID and MS_CLIENT_SECRET settings."
            )

        self.account_id = credentials_dict["account_id"]
        self.client = MSOutlookCalendarAPIClient(access_token=credentials_dict["token"])
        self.refresh_token = credentials_dict["refresh_token"]

    def list_calendars(self) -> Iterable[CalendarData]:
        return [
            CalendarData(
                external_id=c.id,
                name=c.name,
                email=c.email_address or "",
                is_primary=c.is_default,
                provider=self.provider,
                original_payload=c.original_payload or {},
            )
            for c in self.client.list_calendars()
        ]

    def _is_busy(self, ms_event: dict[str, Any]) -> bool:
        if ms_event.get("isCancelled"):
            return False
        return ms_event.get("showAs", "busy") not in self.FREE_SHOW_AS

    def get_availability(
        self,
        date_from: datetime.datetime,
        date_to: datetime.datetime,
        selected_calendars: Iterable[SelectedCalendarData],
    ) -> list[BusyInterval]:
        calendar_ids: list[str | None] = [
            c.external_id for c in selected_calendars if c.integration == self.provider
        ] or [None]

        intervals = []
        for calendar_id in calendar_ids:
            for ms_event in self.client.list_calendar_view(date_from, date_to, calendar_id):
                if not self._is_busy(ms_event):
                    continue
                start = self.client.parse_datetime(ms_event["start"])
                end = self.client.parse_datetime(ms_event["end"])
                if end <= start:
                    logger.warning(
                        "Skipping Outlook event %s with an empty time range", ms_event.get("id")
                    )
                    continue
                intervals.append(BusyInterval(start=start, end=end, source=self.provider))
        return intervals

    def _build_event_body(self, event_data: CalendarEventAdapterInputData) -> dict[str, Any]:
        ms_event_data: dict[str, Any] = {
            "subject": event_data.title,
            "body": {
                "contentType": "Text",
                "content": event_data.description or "",
            },
            "start": self.client.format_datetime(event_data.start_time, event_data.time_zone),
            "end": self.client.format_datetime(event_data.end_time, event_data.time_zone),
            "attendees": [
                {
                    "emailAddress": {
                        "address": attendee.email,
                        "name": attendee.name,
                    },
                    "type": "required",
                }
                for attendee in event_data.attendees
            ],
        }
        if event_data.location:
            ms_event_data["location"] = {"displayName": event_data.location}
        if event_data.request_conference:
            ms_event_data["isOnlineMeeting"] = True
            ms_event_data["onlineMeetingProvider"] = "teamsForBusiness"
        if event_data.request_id:
            ms_event_data["transactionId"] = event_data.request_id
        return ms_event_data

    def _to_output(
        self, calendar_id: str, ms_event: dict[str, Any]
    ) -> CalendarEventAdapterOutputData:
        online_meeting = ms_event.get("onlineMeeting") or {}
        return CalendarEventAdapterOutputData(
            calendar_external_id=calendar_id,
            external_id=ms_event["id"],
            title=ms_event.get("subject", ""),
            start_time=self.client.parse_datetime(ms_event["start"]),
            end_time=self.client.parse_datetime(ms_event["end"]),
            meeting_url=online_meeting.get("joinUrl"),
            original_payload=ms_event,
        )

    def create_event(
        self, event_data: CalendarEventAdapterInputData
    ) -> CalendarEventAdapterOutputData:
        try:
            ms_event = self.client.create_event(
                event_data.calendar_external_id, self._build_event_body(event_data)
            )
        except MSGraphAPIError as e:
            raise MSOutlookAdapterError(f"Failed to create event: {e}") from e
        return self._to_output(event_data.calendar_external_id, ms_event)

    def update_event(
        self, calendar_id: str, event_id: str, event_data: CalendarEventAdapterInputData
    ) -> CalendarEventAdapterOutputData:
        try:
            ms_event = self.client.update_event(event_id, self._build_event_body(event_data))
        except MSGraphAPIError as e:
            raise MSOutlookAdapterError(f"Failed to update event: {e}") from e
        return self._to_output(calendar_id, ms_event)

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        try:
            self.client.delete_event(event_id)
        except MSGraphAPIError as e:
            raise MSOutlookAdapterError(f"Failed to delete event: {e}") from e

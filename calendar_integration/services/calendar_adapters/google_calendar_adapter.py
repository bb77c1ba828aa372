import datetime
import logging
from collections.abc import Iterable
from functools import cache
from typing import Any, Literal, TypedDict

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from pyrate_limiter import Duration, Limiter, Rate, RedisBucket

from calendar_integration.constants import CalendarProvider
from calendar_integration.exceptions import GoogleCredentialsError
from calendar_integration.services.dataclasses import (
    BusyInterval,
    CalendarData,
    CalendarEventAdapterInputData,
    CalendarEventAdapterOutputData,
    SelectedCalendarData,
)
from calendar_integration.services.protocols.calendar_adapter import CalendarAdapter
from common.redis import get_redis_connection


logger = logging.getLogger(__name__)


@cache
def get_read_quota_limiter() -> Limiter:
    return Limiter(
        RedisBucket.init(
            [
                Rate(240, Duration.MINUTE),  # 240 requests per minute
            ],
            redis=get_redis_connection(),
            bucket_key="google_calendar_read_limiter",
        ),
        raise_when_fail=False,
        max_delay=1000,  # Allow a maximum delay of 1 second for read operations
    )


@cache
def get_write_quota_limiter() -> Limiter:
    return Limiter(
        RedisBucket.init(
            [
                Rate(120, Duration.MINUTE),  # 120 requests per minute
            ],
            redis=get_redis_connection(),
            bucket_key="google_calendar_write_limiter",
        ),
        raise_when_fail=False,
        max_delay=2000,  # Allow a maximum delay of 2 seconds for write operations
    )


class GoogleCredentialTypedDict(TypedDict):
    token: str
    refresh_token: str
    account_id: str


def _parse_google_datetime(value: dict[str, str]) -> datetime.datetime:
    if "dateTime" in value:
        parsed = datetime.datetime.fromisoformat(value["dateTime"])
    else:
        # all-day events only carry a date
        parsed = datetime.datetime.fromisoformat(value["date"])
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.UTC)
    return parsed


class GoogleCalendarAdapter(CalendarAdapter):
    provider = CalendarProvider.GOOGLE
    RSVP_STATUS_INVERSE_MAPPING: dict[Literal["pending", "accepted", "declined"] | None, str] = {  # noqa: RUF012
        "pending": "needsAction",
        "accepted": "accepted",
        "declined": "declined",
        None: "needsAction",
    }

    def __init__(self, credentials_dict: GoogleCredentialTypedDict):
        self.account_id = credentials_dict["account_id"]
        GOOGLE_CLIENT_ID = getattr(settings, "GOOGLE_CLIENT_ID", None)  # noqa: N806
        GOOGLE_CLIENT_SECRET = getattr(settings, "GOOGLE_CLIENT_SECRET", None)  # noqa: N806
        if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
            raise ImproperlyConfigured(
                "Google Calendar integration requires GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET settings."
            )

        credentials = Credentials(
            token=credentials_dict["token"],
            refresh_token=credentials_dict["refresh_token"] or None,
            client_id=GOOGLE_CLIENT_ID,
            client_secret=GOOGLE_CLIENT_SECRET,
            token_uri="https://oauth2.googleapis.com/token",  # noqa: S106
        )
        if not credentials.valid and credentials.refresh_token:
            try:
                credentials.refresh(Request())
            except RefreshError as e:
                raise GoogleCredentialsError() from e
        elif not credentials.valid:
            raise GoogleCredentialsError()

        self.client = build("calendar", "v3", credentials=credentials, cache_discovery=False)

    def _acquire_read(self):
        get_read_quota_limiter().try_acquire(f"google_calendar_read_{self.account_id}")

    def _acquire_write(self):
        get_write_quota_limiter().try_acquire(f"google_calendar_write_{self.account_id}")

    def list_calendars(self) -> Iterable[CalendarData]:
        self._acquire_read()
        calendars_data = (
            self.client.calendarList()
            .list(
                maxResults=250,  # Adjust as needed, Google API has a default limit
                showDeleted=False,
                minAccessRole="reader",  # Only fetch calendars where we have at least read access
            )
            .execute()
        )
        return [
            CalendarData(
                external_id=c["id"],
                name=c.get("summary", ""),
                description=c.get("description", ""),
                email=c["id"],
                is_primary=c.get("primary", False),
                provider=self.provider,
                original_payload=c,
            )
            for c in calendars_data.get("items", [])
        ]

    def get_availability(
        self,
        date_from: datetime.datetime,
        date_to: datetime.datetime,
        selected_calendars: Iterable[SelectedCalendarData],
    ) -> list[BusyInterval]:
        calendar_ids = [
            c.external_id for c in selected_calendars if c.integration == self.provider
        ] or ["primary"]

        self._acquire_read()
        free_busy = (
            self.client.freebusy()
            .query(
                body={
                    "timeMin": date_from.astimezone(datetime.UTC).isoformat(),
                    "timeMax": date_to.astimezone(datetime.UTC).isoformat(),
                    "items": [{"id": calendar_id} for calendar_id in calendar_ids],
                }
            )
            .execute()
        )

        intervals = []
        for calendar_id, calendar_data in free_busy.get("calendars", {}).items():
            if calendar_data.get("errors"):
                logger.warning(
                    "Google freebusy returned errors for calendar %s: %s",
                    calendar_id,
                    calendar_data["errors"],
                )
            for busy in calendar_data.get("busy", []):
                intervals.append(
                    BusyInterval(
                        start=datetime.datetime.fromisoformat(busy["start"]),
                        end=datetime.datetime.fromisoformat(busy["end"]),
                        source=self.provider,
                    )
                )
        return intervals

    def _build_event_body(self, event_data: CalendarEventAdapterInputData) -> dict[str, Any]:
        event: dict[str, Any] = {
            "summary": event_data.title,
            "description": event_data.description,
            "start": {
                "dateTime": event_data.start_time.isoformat(),
                "timeZone": event_data.time_zone,
            },
            "end": {
                "dateTime": event_data.end_time.isoformat(),
                "timeZone": event_data.time_zone,
            },
            "attendees": [
                {
                    "email": attendee.email,
                    "displayName": attendee.name,
                    "responseStatus": self.RSVP_STATUS_INVERSE_MAPPING.get(
                        attendee.status, "needsAction"
                    ),
                }
                for attendee in event_data.attendees
            ],
        }
        if event_data.location:
            event["location"] = event_data.location
        if event_data.request_conference:
            event["conferenceData"] = {
                "createRequest": {
                    "requestId": event_data.request_id or event_data.title,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            }
        return event

    def _to_output(
        self, calendar_id: str, google_event: dict[str, Any]
    ) -> CalendarEventAdapterOutputData:
        return CalendarEventAdapterOutputData(
            calendar_external_id=calendar_id,
            external_id=google_event["id"],
            title=google_event.get("summary", ""),
            start_time=_parse_google_datetime(google_event["start"]),
            end_time=_parse_google_datetime(google_event["end"]),
            meeting_url=google_event.get("hangoutLink"),
            original_payload=google_event,
        )

    def create_event(
        self, event_data: CalendarEventAdapterInputData
    ) -> CalendarEventAdapterOutputData:
        self._acquire_write()
        created_event = (
            self.client.events()
            .insert(
                calendarId=event_data.calendar_external_id,
                body=self._build_event_body(event_data),
                conferenceDataVersion=1 if event_data.request_conference else 0,
                sendUpdates="none",
            )
            .execute()
        )
        return self._to_output(event_data.calendar_external_id, created_event)

    def update_event(
        self, calendar_id: str, event_id: str, event_data: CalendarEventAdapterInputData
    ) -> CalendarEventAdapterOutputData:
        self._acquire_write()
        updated_event = (
            self.client.events()
            .update(
                calendarId=calendar_id,
                eventId=event_id,
                body=self._build_event_body(event_data),
                conferenceDataVersion=1 if event_data.request_conference else 0,
                sendUpdates="none",
            )
            .execute()
        )
        return self._to_output(calendar_id, updated_event)

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        self._acquire_write()
        self.client.events().delete(
            calendarId=calendar_id, eventId=event_id, sendUpdates="none"
        ).execute()

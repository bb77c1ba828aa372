import datetime
from unittest.mock import Mock, patch

from django.core.exceptions import ImproperlyConfigured

import pytest

from calendar_integration.constants import CalendarProvider
from calendar_integration.exceptions import MSGraphAPIError, MSOutlookAdapterError
from calendar_integration.services.calendar_adapters.ms_outlook_calendar_adapter import (
    MSOutlookCalendarAdapter,
    MSOutlookCredentialTypedDict,
)
from calendar_integration.services.calendar_clients.ms_outlook_calendar_api_client import (
    MSGraphCalendar,
    MSOutlookCalendarAPIClient,
)
from calendar_integration.services.dataclasses import (
    BusyInterval,
    CalendarEventAdapterInputData,
    EventAttendeeData,
    SelectedCalendarData,
)


MODULE_PATH = "calendar_integration.services.calendar_adapters.ms_outlook_calendar_adapter"


@pytest.fixture
def ms_credentials():
    return MSOutlookCredentialTypedDict(
        token="mock_access_token",
        refresh_token="mock_refresh_token",
        account_id="test_account_123",
    )


@pytest.fixture
def mock_settings():
    with patch(f"{MODULE_PATH}.settings") as mock_settings:
        mock_settings.MS_CLIENT_ID = "mock_client_id"
        mock_settings.MS_CLIENT_SECRET = "mock_client_secret"
        yield mock_settings


@pytest.fixture
def mock_client():
    """Mock Graph client keeping the real date helpers."""
    with patch(f"{MODULE_PATH}.MSOutlookCalendarAPIClient") as mock_client_cls:
        client = Mock()
        client.parse_datetime = MSOutlookCalendarAPIClient.parse_datetime
        client.format_datetime = MSOutlookCalendarAPIClient.format_datetime
        mock_client_cls.return_value = client
        yield client


@pytest.fixture
def adapter(ms_credentials, mock_settings, mock_client):
    return MSOutlookCalendarAdapter(ms_credentials)


def ms_event(event_id, start, end, show_as="busy", **extra):
    return {
        "id": event_id,
        "subject": "Meeting",
        "showAs": show_as,
        "start": {"dateTime": start, "timeZone": "UTC"},
        "end": {"dateTime": end, "timeZone": "UTC"},
        **extra,
    }


class TestMSOutlookCalendarAdapterInitialization:
    def test_init(self, ms_credentials, mock_settings, mock_client):
        with patch(f"{MODULE_PATH}.MSOutlookCalendarAPIClient") as mock_client_cls:
            adapter = MSOutlookCalendarAdapter(ms_credentials)

        mock_client_cls.assert_called_once_with(access_token="mock_access_token")
        assert adapter.account_id == "test_account_123"
        assert adapter.provider == CalendarProvider.MICROSOFT

    def test_init_without_client_settings(self, ms_credentials):
        with patch(f"{MODULE_PATH}.settings") as mock_settings:
            mock_settings.MS_CLIENT_ID = None
            mock_settings.MS_CLIENT_SECRET = None

            with pytest.raises(ImproperlyConfigured):
                MSOutlookCalendarAdapter(ms_credentials)


class TestMSOutlookCalendarAdapterAvailability:
    def test_get_availability_skips_free_and_cancelled_events(self, adapter, mock_client):
        mock_client.list_calendar_view.return_value = [
            ms_event("busy", "2030-01-08T10:00:00.0000000", "2030-01-08T11:00:00.0000000"),
            ms_event("tentative", "2030-01-08T12:00:00", "2030-01-08T12:30:00", "tentative"),
            ms_event("free", "2030-01-08T13:00:00", "2030-01-08T14:00:00", "free"),
            ms_event("elsewhere", "2030-01-08T13:00:00", "2030-01-08T14:00:00", "workingElsewhere"),
            ms_event(
                "cancelled", "2030-01-08T15:00:00", "2030-01-08T16:00:00", isCancelled=True
            ),
            ms_event("empty", "2030-01-08T17:00:00", "2030-01-08T17:00:00"),
        ]
        date_from = datetime.datetime(2030, 1, 8, tzinfo=datetime.UTC)
        date_to = datetime.datetime(2030, 1, 9, tzinfo=datetime.UTC)

        intervals = adapter.get_availability(date_from, date_to, [])

        mock_client.list_calendar_view.assert_called_once_with(date_from, date_to, None)
        assert intervals == [
            BusyInterval(
                start=datetime.datetime(2030, 1, 8, 10, tzinfo=datetime.UTC),
                end=datetime.datetime(2030, 1, 8, 11, tzinfo=datetime.UTC),
                source=CalendarProvider.MICROSOFT,
            ),
            BusyInterval(
                start=datetime.datetime(2030, 1, 8, 12, tzinfo=datetime.UTC),
                end=datetime.datetime(2030, 1, 8, 12, 30, tzinfo=datetime.UTC),
                source=CalendarProvider.MICROSOFT,
            ),
        ]

    def test_get_availability_per_selected_calendar(self, adapter, mock_client):
        mock_client.list_calendar_view.return_value = []
        date_from = datetime.datetime(2030, 1, 8, tzinfo=datetime.UTC)
        date_to = datetime.datetime(2030, 1, 9, tzinfo=datetime.UTC)

        adapter.get_availability(
            date_from,
            date_to,
            [
                SelectedCalendarData(external_id="cal-1", integration="microsoft"),
                SelectedCalendarData(external_id="cal-2", integration="microsoft"),
                SelectedCalendarData(external_id="primary", integration="google"),
            ],
        )

        assert [c[0][2] for c in mock_client.list_calendar_view.call_args_list] == [
            "cal-1",
            "cal-2",
        ]

    def test_list_calendars(self, adapter, mock_client):
        mock_client.list_calendars.return_value = [
            MSGraphCalendar(
                id="cal-1",
                name="Calendar",
                email_address="me@example.com",
                can_edit=True,
                is_default=True,
            )
        ]

        calendars = adapter.list_calendars()

        assert calendars[0].external_id == "cal-1"
        assert calendars[0].email == "me@example.com"
        assert calendars[0].is_primary is True
        assert calendars[0].original_payload == {}


class TestMSOutlookCalendarAdapterEvents:
    @pytest.fixture
    def event_input(self):
        return CalendarEventAdapterInputData(
            calendar_external_id="cal-1",
            title="Intro call",
            description="",
            start_time=datetime.datetime(2030, 1, 8, 10, tzinfo=datetime.UTC),
            end_time=datetime.datetime(2030, 1, 8, 10, 30, tzinfo=datetime.UTC),
            location="Office",
            attendees=[EventAttendeeData(email="guest@example.com", name="Guest")],
            request_conference=True,
            request_id="booking-uid",
        )

    def test_create_event(self, adapter, mock_client, event_input):
        mock_client.create_event.return_value = ms_event(
            "event-1",
            "2030-01-08T10:00:00",
            "2030-01-08T10:30:00",
            onlineMeeting={"joinUrl": "https://teams.example.com/join"},
        )

        result = adapter.create_event(event_input)

        calendar_id, body = mock_client.create_event.call_args[0]
        assert calendar_id == "cal-1"
        assert body["start"] == {"dateTime": "2030-01-08T10:00:00", "timeZone": "UTC"}
        assert body["isOnlineMeeting"] is True
        assert body["transactionId"] == "booking-uid"
        assert body["location"] == {"displayName": "Office"}
        assert body["attendees"] == [
            {
                "emailAddress": {"address": "guest@example.com", "name": "Guest"},
                "type": "required",
            }
        ]
        assert result.external_id == "event-1"
        assert result.meeting_url == "https://teams.example.com/join"

    def test_create_event_api_error(self, adapter, mock_client, event_input):
        mock_client.create_event.side_effect = MSGraphAPIError("boom", 400)

        with pytest.raises(MSOutlookAdapterError, match="Failed to create event"):
            adapter.create_event(event_input)

    def test_update_event(self, adapter, mock_client, event_input):
        mock_client.update_event.return_value = ms_event(
            "event-1", "2030-01-08T10:00:00", "2030-01-08T10:30:00"
        )

        result = adapter.update_event("cal-1", "event-1", event_input)

        assert mock_client.update_event.call_args[0][0] == "event-1"
        assert result.calendar_external_id == "cal-1"
        assert result.meeting_url is None

    def test_delete_event_api_error(self, adapter, mock_client):
        mock_client.delete_event.side_effect = MSGraphAPIError("gone", 404)

        with pytest.raises(MSOutlookAdapterError, match="Failed to delete event"):
            adapter.delete_event("cal-1", "event-1")

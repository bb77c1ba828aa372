import datetime
from unittest.mock import Mock, patch

import pytest
import requests

from calendar_integration.exceptions import MSGraphAPIError, MSGraphCredentialsError
from calendar_integration.services.calendar_clients.ms_outlook_calendar_api_client import (
    MSOutlookCalendarAPIClient,
)


MODULE_PATH = "calendar_integration.services.calendar_clients.ms_outlook_calendar_api_client"


def make_response(status_code=200, json_data=None):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.content = b"{}" if json_data is not None else b""
    response.json.return_value = json_data
    return response


@pytest.fixture(autouse=True)
def mock_limiter():
    with patch(f"{MODULE_PATH}.get_quota_limiter") as mock_get_limiter:
        yield mock_get_limiter.return_value


@pytest.fixture(autouse=True)
def mock_sleep():
    with patch(f"{MODULE_PATH}.time.sleep") as mock_sleep:
        yield mock_sleep


@pytest.fixture
def client():
    client = MSOutlookCalendarAPIClient(access_token="token")
    client.session = Mock()
    return client


class TestMSOutlookCalendarAPIClient:
    def test_session_headers(self):
        client = MSOutlookCalendarAPIClient(access_token="token")

        assert client.session.headers["Authorization"] == "Bearer token"
        assert client.session.headers["Prefer"] == 'outlook.timezone="UTC"'

    def test_list_calendar_view_follows_next_link(self, client, mock_limiter):
        client.session.request.side_effect = [
            make_response(
                json_data={
                    "value": [{"id": "1"}],
                    "@odata.nextLink": "https://graph.microsoft.com/v1.0/next-page",
                }
            ),
            make_response(json_data={"value": [{"id": "2"}]}),
        ]

        events = client.list_calendar_view(
            datetime.datetime(2030, 1, 8, tzinfo=datetime.UTC),
            datetime.datetime(2030, 1, 9, tzinfo=datetime.UTC),
            "cal-1",
        )

        assert [event["id"] for event in events] == ["1", "2"]
        first_call, second_call = client.session.request.call_args_list
        assert first_call[1]["url"] == (
            "https://graph.microsoft.com/v1.0/me/calendars/cal-1/calendarView"
        )
        assert first_call[1]["params"]["startDateTime"] == "2030-01-08T00:00:00+00:00"
        assert "showAs" in first_call[1]["params"]["$select"]
        assert second_call[1]["url"] == "https://graph.microsoft.com/v1.0/next-page"
        assert mock_limiter.try_acquire.call_count == 2

    def test_default_calendar_view(self, client):
        client.session.request.return_value = make_response(json_data={"value": []})

        client.list_calendar_view(
            datetime.datetime(2030, 1, 8, tzinfo=datetime.UTC),
            datetime.datetime(2030, 1, 9, tzinfo=datetime.UTC),
        )

        assert client.session.request.call_args[1]["url"] == (
            "https://graph.microsoft.com/v1.0/me/calendarView"
        )

    def test_retries_on_throttling(self, client, mock_sleep):
        client.session.request.side_effect = [
            make_response(429, {"error": {"message": "Too many requests"}}),
            make_response(json_data={"id": "event-1"}),
        ]

        response = client.update_event("event-1", {"subject": "Moved"})

        assert response == {"id": "event-1"}
        mock_sleep.assert_called_once_with(1)

    def test_gives_up_after_retries(self, client):
        client.session.request.return_value = make_response(
            503, {"error": {"message": "Unavailable"}}
        )

        with pytest.raises(MSGraphAPIError) as exc_info:
            client.create_event("cal-1", {"subject": "Intro"})

        assert exc_info.value.status_code == 503
        assert client.session.request.call_count == 4

    def test_network_errors_are_retried(self, client):
        client.session.request.side_effect = requests.ConnectionError("down")

        with pytest.raises(MSGraphAPIError, match="Request failed after 4 attempts"):
            client.delete_event("event-1")

    def test_unauthorized(self, client):
        client.session.request.return_value = make_response(
            401, {"error": {"message": "Expired token"}}
        )

        with pytest.raises(MSGraphCredentialsError):
            client.list_calendars()

    def test_delete_returns_no_content(self, client):
        client.session.request.return_value = make_response(204)

        assert client.delete_event("event-1") is None
        assert client.session.request.call_args[1]["method"] == "DELETE"

    def test_parse_datetime(self):
        parsed = MSOutlookCalendarAPIClient.parse_datetime(
            {"dateTime": "2030-01-08T10:00:00.1234567", "timeZone": "UTC"}
        )

        assert parsed == datetime.datetime(2030, 1, 8, 10, 0, 0, 123456, tzinfo=datetime.UTC)

    def test_format_datetime(self):
        formatted = MSOutlookCalendarAPIClient.format_datetime(
            datetime.datetime(2030, 1, 8, 7, tzinfo=datetime.timezone(datetime.timedelta(hours=-3)))
        )

        assert formatted == {"dateTime": "2030-01-08T10:00:00", "timeZone": "UTC"}

"""
Microsoft Graph Calendar API client.

Covers the calls the booking engine needs from Outlook calendars: listing calendars, reading
calendar views for busy times and managing the events created for bookings.

Requests are rate limited with a Redis backed limiter and retried with exponential backoff
on throttling and server errors.
"""

import datetime
import logging
import time
from collections.abc import Iterator
from dataclasses import dataclass
from functools import cache
from typing import Any

import requests
from pyrate_limiter import Duration, Limiter, Rate, RedisBucket

from calendar_integration.exceptions import MSGraphAPIError, MSGraphCredentialsError
from common.redis import get_redis_connection


logger = logging.getLogger(__name__)


@cache
def get_quota_limiter() -> Limiter:
    return Limiter(
        RedisBucket.init(
            [
                Rate(10000, Duration.MINUTE * 10),  # 10000 requests every 10 minutes
            ],
            redis=get_redis_connection(),
            bucket_key="ms_outlook_calendar_limiter",
        ),
        raise_when_fail=False,
        max_delay=1000,  # Allow a maximum delay of 1 second for read operations
    )


RETRIES_ON_ERROR = 3
STATUS_TO_RETRY = {429, 500, 502, 503, 504}  # HTTP status codes to retry on


@dataclass
class MSGraphCalendar:
    """Microsoft Graph Calendar representation"""

    id: str  # noqa: A003
    name: str
    email_address: str | None
    can_edit: bool
    is_default: bool
    original_payload: dict[str, Any] | None = None


class MSOutlookCalendarAPIClient:
    """
    Microsoft Graph Calendar API Client for Microsoft Outlook integration.
    """

    BASE_URL = "https://graph.microsoft.com/v1.0"

    def __init__(self, access_token: str, user_id: str | None = None):
        """
        Initialize the MS Outlook Calendar API client.

        Args:
            access_token: OAuth2 access token for Microsoft Graph API
            user_id: Optional user ID. If not provided, 'me' will be used
        """
        self.access_token = access_token
        self.user_id = user_id or "me"
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
                # every dateTime in responses comes back in UTC
                "Prefer": 'outlook.timezone="UTC"',
            }
        )

    @property
    def _user_path(self) -> str:
        return "me" if self.user_id == "me" else f"users/{self.user_id}"

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make HTTP request to Microsoft Graph API with retry logic.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            endpoint: API endpoint, relative to BASE_URL, or an absolute @odata.nextLink
            params: Query parameters
            data: Request body data

        Returns:
            Response data as dictionary

        Raises:
            MSGraphAPIError: If the API request fails after all retries
        """
        url = endpoint if endpoint.startswith("http") else f"{self.BASE_URL}/{endpoint.lstrip('/')}"

        for attempt in range(RETRIES_ON_ERROR + 1):  # +1 for the initial attempt
            try:
                get_quota_limiter().try_acquire("ms_outlook_calendar")
                response = self.session.request(
                    method=method,
                    url=url,
                    params=params,
                    json=data,
                    timeout=30,
                )
            except requests.RequestException as e:
                if attempt < RETRIES_ON_ERROR:
                    wait_time = 2**attempt  # Exponential backoff: 1s, 2s, 4s
                    logger.warning(
                        "Request exception occurred (attempt %d/%d): %s. Retrying in %ds...",
                        attempt + 1,
                        RETRIES_ON_ERROR + 1,
                        e,
                        wait_time,
                    )
                    time.sleep(wait_time)
                    continue
                raise MSGraphAPIError(
                    f"Request failed after {RETRIES_ON_ERROR + 1} attempts: {e!s}"
                ) from e

            if response.status_code == 204:  # No Content
                return {}

            response_data = response.json() if response.content else {}
            if response.ok:
                return response_data

            if response.status_code in STATUS_TO_RETRY and attempt < RETRIES_ON_ERROR:
                wait_time = 2**attempt
                logger.warning(
                    "MS Graph API returned %s (attempt %d/%d). Retrying in %ds...",
                    response.status_code,
                    attempt + 1,
                    RETRIES_ON_ERROR + 1,
                    wait_time,
                )
                time.sleep(wait_time)
                continue

            error_msg = f"MS Graph API error: {response.status_code}"
            if "error" in response_data:
                error_msg += f" - {response_data['error'].get('message', 'Unknown error')}"
            logger.error("%s. Response: %s", error_msg, response_data)
            if response.status_code == 401:
                raise MSGraphCredentialsError()
            raise MSGraphAPIError(error_msg, response.status_code, response_data)

        raise MSGraphAPIError("Unexpected error: request loop completed without returning")

    def _paginate(self, endpoint: str, params: dict[str, Any] | None = None) -> Iterator[dict]:
        response = self._make_request("GET", endpoint, params=params)
        yield from response.get("value", [])
        while next_link := response.get("@odata.nextLink"):
            response = self._make_request("GET", next_link)
            yield from response.get("value", [])

    @staticmethod
    def parse_datetime(dt_dict: dict[str, str]) -> datetime.datetime:
        """Parse a Graph ``{dateTime, timeZone}`` pair. Responses are requested in UTC."""
        dt_str = dt_dict["dateTime"].rstrip("Z")
        # Graph sends 7 fractional digits, fromisoformat accepts at most 6
        if "." in dt_str:
            whole, fraction = dt_str.split(".", 1)
            dt_str = f"{whole}.{fraction[:6]}"
        parsed = datetime.datetime.fromisoformat(dt_str)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=datetime.UTC)
        return parsed

    @staticmethod
    def format_datetime(dt: datetime.datetime, timezone: str = "UTC") -> dict[str, str]:
        if timezone == "UTC":
            dt = dt.astimezone(datetime.UTC)
        return {"dateTime": dt.strftime("%Y-%m-%dT%H:%M:%S"), "timeZone": timezone}

    def list_calendars(self) -> list[MSGraphCalendar]:
        return [
            MSGraphCalendar(
                id=calendar["id"],
                name=calendar.get("name", ""),
                email_address=(calendar.get("owner") or {}).get("address"),
                can_edit=calendar.get("canEdit", False),
                is_default=calendar.get("isDefaultCalendar", False),
                original_payload=calendar,
            )
            for calendar in self._paginate(f"{self._user_path}/calendars")
        ]

    def list_calendar_view(
        self,
        start_time: datetime.datetime,
        end_time: datetime.datetime,
        calendar_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Events overlapping ``[start_time, end_time)``, recurring series expanded.
        Uses the default calendar when ``calendar_id`` is not given.
        """
        endpoint = (
            f"{self._user_path}/calendars/{calendar_id}/calendarView"
            if calendar_id
            else f"{self._user_path}/calendarView"
        )
        params = {
            "startDateTime": start_time.astimezone(datetime.UTC).isoformat(),
            "endDateTime": end_time.astimezone(datetime.UTC).isoformat(),
            "$select": "subject,showAs,start,end,isCancelled",
            "$top": 250,
        }
        return list(self._paginate(endpoint, params=params))

    def create_event(self, calendar_id: str, body: dict[str, Any]) -> dict[str, Any]:
        return self._make_request(
            "POST", f"{self._user_path}/calendars/{calendar_id}/events", data=body
        )

    def update_event(self, event_id: str, body: dict[str, Any]) -> dict[str, Any]:
        return self._make_request("PATCH", f"{self._user_path}/events/{event_id}", data=body)

    def delete_event(self, event_id: str) -> None:
        self._make_request("DELETE", f"{self._user_path}/events/{event_id}")

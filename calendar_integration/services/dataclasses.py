import datetime
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import TYPE_CHECKING, Any, Literal, TypedDict


if TYPE_CHECKING:
    from calendar_integration.models import CalendarCredential
    from users.models import User


class BusyIntervalTypedDict(TypedDict):
    start: str
    end: str
    title: str | None
    source: str


@dataclass(frozen=True)
class BusyInterval:
    """Half-open ``[start, end)`` range during which a host is unavailable."""

    start: datetime.datetime
    end: datetime.datetime
    source: str
    title: str | None = None

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(
                f"Busy interval must end after it starts: {self.start.isoformat()} >= "
                f"{self.end.isoformat()}"
            )

    def overlaps(self, start: datetime.datetime, end: datetime.datetime) -> bool:
        return self.start < end and self.end > start

    def to_utc(self) -> "BusyInterval":
        return BusyInterval(
            start=self.start.astimezone(datetime.UTC),
            end=self.end.astimezone(datetime.UTC),
            source=self.source,
            title=self.title,
        )

    def to_dict(self) -> BusyIntervalTypedDict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "title": self.title,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: BusyIntervalTypedDict) -> "BusyInterval":
        return cls(
            start=datetime.datetime.fromisoformat(data["start"]),
            end=datetime.datetime.fromisoformat(data["end"]),
            title=data.get("title"),
            source=data["source"],
        )


@dataclass(frozen=True)
class SelectedCalendarData:
    external_id: str
    integration: str


@dataclass
class CalendarData:
    external_id: str
    name: str
    provider: str
    description: str = ""
    email: str = ""
    is_primary: bool = False
    original_payload: dict[str, Any] = dataclass_field(default_factory=dict)


@dataclass
class EventAttendeeData:
    email: str
    name: str
    status: Literal["accepted", "declined", "pending"] = "pending"


@dataclass
class CalendarEventAdapterInputData:
    calendar_external_id: str
    title: str
    description: str
    start_time: datetime.datetime
    end_time: datetime.datetime
    time_zone: str = "UTC"
    location: str = ""
    attendees: list[EventAttendeeData] = dataclass_field(default_factory=list)
    request_conference: bool = False
    # idempotency token for providers that support it (booking uid)
    request_id: str | None = None


@dataclass
class CalendarEventAdapterOutputData:
    calendar_external_id: str
    external_id: str
    title: str
    start_time: datetime.datetime
    end_time: datetime.datetime
    meeting_url: str | None = None
    original_payload: dict[str, Any] = dataclass_field(default_factory=dict)


@dataclass
class BusyTimesQueryUser:
    """Input of the busy times aggregation for one host."""

    user_id: int
    email: str = ""
    credentials: list["CalendarCredential"] = dataclass_field(default_factory=list)
    selected_calendars: list[SelectedCalendarData] = dataclass_field(default_factory=list)

    @classmethod
    def from_user(cls, user: "User") -> "BusyTimesQueryUser":
        return cls(
            user_id=user.pk,
            email=user.email,
            credentials=list(user.calendar_credentials.calendar_integrations()),
            selected_calendars=[
                SelectedCalendarData(external_id=c.external_id, integration=c.integration)
                for c in user.selected_calendars.all()
            ],
        )


@dataclass
class BusyTimesFetchResult:
    """Outcome of reading one credential: the intervals, or a soft failure with its reason."""

    source: str
    intervals: list[BusyInterval] = dataclass_field(default_factory=list)
    error: str | None = None
    from_cache: bool = False
    credential_rejected: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None

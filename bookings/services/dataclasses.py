import datetime
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import TYPE_CHECKING, Any

from bookings.exceptions import BookingRejectionError


if TYPE_CHECKING:
    from bookings.models import Booking
    from payments.models import Payment
    from users.models import User


@dataclass
class AttendeeInputData:
    email: str
    name: str
    time_zone: str = "UTC"
    locale: str = "en"


@dataclass
class BookingRequestData:
    """
    A guest's booking attempt.

    ``booking_uid`` joins an existing seated booking, ``reschedule_uid`` replaces an existing
    booking and ``recurring_event_id`` with ``recurring_count`` books a series.
    """

    event_type_slug: str
    start_time: datetime.datetime
    end_time: datetime.datetime
    attendee: AttendeeInputData
    guests: list[str] = dataclass_field(default_factory=list)
    time_zone: str = "UTC"
    language: str = "en"
    usernames: list[str] = dataclass_field(default_factory=list)
    booking_uid: str | None = None
    reschedule_uid: str | None = None
    reschedule_reason: str = ""
    recurring_event_id: str | None = None
    recurring_count: int | None = None
    responses: dict[str, Any] = dataclass_field(default_factory=dict)
    notes: str = ""
    location: str = ""


@dataclass
class BookingRejection:
    code: str
    message: str
    http_status: int

    @classmethod
    def from_error(cls, error: BookingRejectionError) -> "BookingRejection":
        return cls(code=str(error.code), message=error.message, http_status=error.http_status)


@dataclass
class BookingResult:
    """
    Outcome of a booking attempt: the written bookings, or the rejection.
    ``payment_required`` marks a booking admitted but waiting for payment.
    """

    bookings: list["Booking"] = dataclass_field(default_factory=list)
    rejection: BookingRejection | None = None
    payment: "Payment | None" = None
    payment_required: bool = False
    rescheduled_from: "Booking | None" = None
    seat_added: bool = False

    @property
    def succeeded(self) -> bool:
        return self.rejection is None

    @property
    def booking(self) -> "Booking | None":
        return self.bookings[0] if self.bookings else None


@dataclass
class BookingStatusChangeData:
    booking: "Booking"
    previous_status: str
    actor: "User | None" = None
    reason: str = ""

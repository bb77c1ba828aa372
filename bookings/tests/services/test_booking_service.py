import datetime
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

from django.db import connection

import pytest
from model_bakery import baker

from bookings.constants import (
    BookingLimitPeriod,
    BookingRejectionCode,
    BookingStatus,
    CustomInputType,
    SchedulingType,
)
from bookings.exceptions import (
    BookingConflictError,
    BookingDependencyError,
    BookingStateTransitionError,
)
from bookings.models import Attendee, Booking, EventTypeHost
from bookings.services.booking_service import (
    BookingService,
    generate_booking_uid,
    get_recurring_occurrences,
    requires_confirmation,
)
from bookings.services.booking_side_effects_service import BookingSideEffectsService
from bookings.services.dataclasses import AttendeeInputData, BookingRequestData
from calendar_integration.exceptions import BusyTimesDependencyError
from calendar_integration.services.busy_times_service import BusyTimesService
from payments.services.payment_service import PaymentService


UTC = datetime.UTC


def dt(hour, minute=0, day=8):
    return datetime.datetime(2030, 1, day, hour, minute, tzinfo=UTC)


def make_request(start=None, **overrides):
    start = start or dt(10)
    data = {
        "event_type_slug": "intro-call",
        "start_time": start,
        "end_time": start + datetime.timedelta(minutes=30),
        "attendee": AttendeeInputData(email="guest@example.com", name="Guest"),
    }
    data.update(overrides)
    return BookingRequestData(**data)


def make_booking(event_type, host, start, status=BookingStatus.ACCEPTED, uid=None, **kwargs):
    return baker.make(
        Booking,
        uid=uid or f"{host.username}-{start.isoformat()}",
        event_type=event_type,
        host=host,
        title="Existing booking",
        start_time=start,
        end_time=start + datetime.timedelta(minutes=30),
        status=status,
        **kwargs,
    )


@pytest.fixture
def payment_service():
    return MagicMock(spec=PaymentService)


@pytest.fixture
def side_effects_service():
    return MagicMock(spec=BookingSideEffectsService)


@pytest.fixture
def booking_service(busy_times_service, payment_service, side_effects_service):
    return BookingService(
        busy_times_service=busy_times_service,
        payment_service=payment_service,
        side_effects_service=side_effects_service,
    )


@pytest.fixture
def team(event_type, host, second_host):
    baker.make(EventTypeHost, event_type=event_type, user=host, priority=0)
    baker.make(EventTypeHost, event_type=event_type, user=second_host, priority=1)
    return [host, second_host]


def test_generate_booking_uid_depends_on_request_time():
    first = generate_booking_uid("host", dt(10), dt(8))
    second = generate_booking_uid("host", dt(10), dt(8, 1))

    assert first != second
    assert first == generate_booking_uid("host", dt(10), dt(8))
    assert len(first) == 32


@pytest.mark.django_db
class TestRequiresConfirmation:
    def test_not_required(self, event_type, now):
        assert requires_confirmation(event_type, dt(10), now) is False

    def test_required_without_threshold(self, event_type, now):
        event_type.requires_confirmation = True

        assert requires_confirmation(event_type, dt(10, day=20), now) is True

    def test_threshold_in_whole_units(self, event_type, now):
        event_type.requires_confirmation = True
        event_type.requires_confirmation_threshold = {"time": 2, "unit": "days"}

        # 2 days and 23 hours away still counts as 2 days
        assert requires_confirmation(event_type, now + datetime.timedelta(days=2, hours=23), now)
        assert not requires_confirmation(event_type, now + datetime.timedelta(days=3), now)


@pytest.mark.django_db
def test_get_recurring_occurrences_caps_the_count(event_type):
    event_type.recurring_event = {"freq": "weekly", "interval": 1, "count": 3}

    occurrences = get_recurring_occurrences(event_type, dt(10), dt(10, 30), requested_count=5)

    assert occurrences == [
        (dt(10), dt(10, 30)),
        (dt(10, day=15), dt(10, 30, day=15)),
        (dt(10, day=22), dt(10, 30, day=22)),
    ]


@pytest.mark.django_db
class TestBookingServiceBook:
    def test_books_free_slot(self, booking_service, event_type, host, now):
        result = booking_service.book(make_request(), now=now)

        assert result.succeeded
        booking = result.booking
        assert booking.status == BookingStatus.ACCEPTED
        assert booking.host == host
        assert booking.start_time == dt(10)
        assert booking.title == "Intro call between Hanna Host and Guest"
        assert booking.uid == generate_booking_uid("host", dt(10), now)
        assert list(booking.attendees.values_list("email", "name")) == [
            ("guest@example.com", "Guest")
        ]
        assert result.payment_required is False

    def test_guests_are_attendees(self, booking_service, event_type, now):
        result = booking_service.book(
            make_request(guests=["friend@example.com", "GUEST@example.com"]), now=now
        )

        assert list(result.booking.attendees.values_list("email", flat=True)) == [
            "guest@example.com",
            "friend@example.com",
        ]

    def test_unknown_event_type(self, booking_service, now):
        result = booking_service.book(make_request(event_type_slug="missing"), now=now)

        assert result.rejection.code == BookingRejectionCode.NOT_FOUND
        assert result.rejection.http_status == 404

    def test_wrong_length(self, booking_service, event_type, now):
        result = booking_service.book(make_request(end_time=dt(11)), now=now)

        assert result.rejection.code == BookingRejectionCode.VALIDATION_ERROR
        assert result.rejection.http_status == 400
        assert Booking.objects.count() == 0

    def test_required_custom_input(self, booking_service, event_type, now):
        event_type.custom_inputs = [
            {"label": "Agenda", "type": CustomInputType.TEXT, "required": True},
            {"label": "Accept terms", "type": CustomInputType.BOOL, "required": True},
        ]
        event_type.save()

        missing = booking_service.book(make_request(responses={"Accept terms": True}), now=now)
        unchecked = booking_service.book(
            make_request(responses={"Agenda": "Intro", "Accept terms": False}), now=now
        )
        ok = booking_service.book(
            make_request(responses={"Agenda": "Intro", "Accept terms": True}), now=now
        )

        assert missing.rejection.message == "Missing required input: Agenda"
        assert unchecked.rejection.message == "Missing required input: Accept terms"
        assert ok.succeeded
        assert ok.booking.responses == {"Agenda": "Intro", "Accept terms": True}

    def test_number_custom_input(self, booking_service, event_type, now):
        event_type.custom_inputs = [{"label": "Team size", "type": CustomInputType.NUMBER}]
        event_type.save()

        result = booking_service.book(make_request(responses={"Team size": "many"}), now=now)

        assert result.rejection.message == "Team size must be a number."

    def test_past_slot(self, booking_service, event_type, now):
        result = booking_service.book(make_request(start=dt(7, day=7)), now=now)

        assert result.rejection.code == BookingRejectionCode.OUT_OF_BOUNDS
        assert result.rejection.message == "Attempting to book a meeting in the past."

    def test_busy_host(self, booking_service, event_type, host, now):
        make_booking(event_type, host, dt(10, 15))

        result = booking_service.book(make_request(), now=now)

        assert result.rejection.code == BookingRejectionCode.UNAVAILABLE
        assert result.rejection.message == "No available users found."
        assert result.rejection.http_status == 409

    def test_host_busy_as_attendee_of_another_booking(
        self, booking_service, event_type, host, second_host, now
    ):
        other = make_booking(event_type, second_host, dt(10))
        baker.make(Attendee, booking=other, email="host@example.com", name="Hanna")

        result = booking_service.book(make_request(), now=now)

        assert result.rejection.code == BookingRejectionCode.UNAVAILABLE

    def test_busy_times_store_failure_is_not_a_rejection(self, event_type, now):
        busy_times_service = MagicMock(spec=BusyTimesService)
        busy_times_service.get_busy_times_by_user_and_day.side_effect = BusyTimesDependencyError()
        service = BookingService(
            busy_times_service=busy_times_service, payment_service=None, side_effects_service=None
        )

        with pytest.raises(BookingDependencyError):
            service.book(make_request(), now=now)

    def test_booking_limit(self, booking_service, event_type, host, now):
        event_type.booking_limits = {BookingLimitPeriod.PER_DAY: 1}
        event_type.save()
        make_booking(event_type, host, dt(15))

        result = booking_service.book(make_request(), now=now)

        assert result.rejection.code == BookingRejectionCode.UNAVAILABLE
        assert result.rejection.message == "Booking limit reached: 1 per day."

    def test_duplicate_uid_is_a_conflict(self, booking_service, event_type, host, now):
        make_booking(event_type, host, dt(15), uid="taken")

        with patch(
            "bookings.services.booking_service.generate_booking_uid", return_value="taken"
        ):
            result = booking_service.book(make_request(), now=now)

        assert result.rejection.code == BookingRejectionCode.CONFLICT
        assert result.rejection.message == "booking.conflict"
        assert Booking.objects.count() == 1

    def test_explicit_usernames(self, booking_service, event_type, host, second_host, now):
        result = booking_service.book(make_request(usernames=["second-host"]), now=now)

        assert result.booking.host == second_host

    def test_unknown_usernames(self, booking_service, now):
        result = booking_service.book(make_request(usernames=["nobody"]), now=now)

        assert result.rejection.code == BookingRejectionCode.NOT_FOUND

    def test_side_effects_run_after_commit(
        self, booking_service, side_effects_service, event_type, now,
        django_capture_on_commit_callbacks,
    ):
        with django_capture_on_commit_callbacks(execute=True):
            result = booking_service.book(make_request(), now=now)

        side_effects_service.on_booking_created.assert_called_once_with(result)


@pytest.mark.django_db
class TestBookingServiceTeams:
    def test_collective_needs_every_host(
        self, booking_service, event_type, team, second_host, now
    ):
        event_type.scheduling_type = SchedulingType.COLLECTIVE
        event_type.save()
        make_booking(event_type, second_host, dt(10))

        result = booking_service.book(make_request(), now=now)

        assert result.rejection.code == BookingRejectionCode.UNAVAILABLE

    def test_collective_adds_other_hosts_as_attendees(
        self, booking_service, event_type, team, host, now
    ):
        event_type.scheduling_type = SchedulingType.COLLECTIVE
        event_type.save()

        result = booking_service.book(make_request(), now=now)

        assert result.booking.host == host
        assert list(result.booking.attendees.values_list("email", flat=True)) == [
            "guest@example.com",
            "second-host@example.com",
        ]

    def test_collective_booking_blocks_co_host(
        self, booking_service, event_type, team, second_host, now
    ):
        event_type.scheduling_type = SchedulingType.COLLECTIVE
        event_type.save()
        booking_service.book(make_request(), now=now)

        result = booking_service.book(
            make_request(
                attendee=AttendeeInputData(email="other@example.com", name="Other"),
                usernames=["second-host"],
            ),
            now=now,
        )

        assert result.rejection.code == BookingRejectionCode.UNAVAILABLE

    def test_round_robin_picks_first_free_host(
        self, booking_service, event_type, team, host, second_host, now
    ):
        event_type.scheduling_type = SchedulingType.ROUND_ROBIN
        event_type.save()

        first = booking_service.book(make_request(), now=now)
        make_booking(event_type, host, dt(11))
        second = booking_service.book(make_request(start=dt(11)), now=now)

        assert first.booking.host == host
        assert second.booking.host == second_host
        assert list(second.booking.attendees.values_list("email", flat=True)) == [
            "guest@example.com"
        ]

    def test_round_robin_every_host_busy(
        self, booking_service, event_type, team, host, second_host, now
    ):
        event_type.scheduling_type = SchedulingType.ROUND_ROBIN
        event_type.save()
        make_booking(event_type, host, dt(10))
        make_booking(event_type, second_host, dt(10))

        result = booking_service.book(make_request(), now=now)

        assert result.rejection.code == BookingRejectionCode.UNAVAILABLE

    def test_round_robin_recurring_checks_every_occurrence(
        self, booking_service, event_type, team, host, second_host, now
    ):
        event_type.scheduling_type = SchedulingType.ROUND_ROBIN
        event_type.recurring_event = {"freq": "weekly", "interval": 1, "count": 2}
        event_type.save()
        make_booking(event_type, host, dt(10, day=15))

        result = booking_service.book(
            make_request(recurring_event_id="series-1", recurring_count=2), now=now
        )

        assert [booking.host for booking in result.bookings] == [second_host, second_host]


@pytest.mark.django_db
class TestBookingServiceRecurring:
    def test_one_booking_per_occurrence(self, booking_service, event_type, now):
        event_type.recurring_event = {"freq": "weekly", "interval": 1, "count": 3}
        event_type.save()

        result = booking_service.book(
            make_request(recurring_event_id="series-1", recurring_count=5), now=now
        )

        assert [booking.start_time for booking in result.bookings] == [
            dt(10),
            dt(10, day=15),
            dt(10, day=22),
        ]
        assert {booking.recurring_event_id for booking in result.bookings} == {"series-1"}
        assert len({booking.uid for booking in result.bookings}) == 3

    def test_conflicting_occurrence_rejects_series(
        self, booking_service, event_type, host, now
    ):
        event_type.recurring_event = {"freq": "weekly", "interval": 1, "count": 3}
        event_type.save()
        make_booking(event_type, host, dt(10, day=22))

        result = booking_service.book(
            make_request(recurring_event_id="series-1", recurring_count=3), now=now
        )

        assert result.rejection.code == BookingRejectionCode.UNAVAILABLE
        assert Booking.objects.count() == 1

    def test_event_type_without_rule_books_once(self, booking_service, event_type, now):
        result = booking_service.book(
            make_request(recurring_event_id="series-1", recurring_count=3), now=now
        )

        assert len(result.bookings) == 1


@pytest.mark.django_db
class TestBookingServiceSeats:
    @pytest.fixture
    def seated_booking(self, event_type, host):
        event_type.seats_per_time_slot = 2
        event_type.save()
        booking = make_booking(event_type, host, dt(10), uid="seated")
        baker.make(Attendee, booking=booking, email="first@example.com", name="First")
        return booking

    def test_adds_seat(
        self, booking_service, side_effects_service, seated_booking, now,
        django_capture_on_commit_callbacks,
    ):
        with django_capture_on_commit_callbacks(execute=True):
            result = booking_service.book(make_request(booking_uid="seated"), now=now)

        assert result.seat_added
        assert result.booking == seated_booking
        assert seated_booking.seats_used == 2
        attendee = seated_booking.attendees.get(email="guest@example.com")
        side_effects_service.on_seat_added.assert_called_once_with(seated_booking, attendee)

    def test_seats_full(self, booking_service, seated_booking, now):
        baker.make(Attendee, booking=seated_booking, email="second@example.com", name="Second")

        result = booking_service.book(make_request(booking_uid="seated"), now=now)

        assert result.rejection.code == BookingRejectionCode.CONFLICT
        assert result.rejection.message == "Booking seats are full"
        assert result.rejection.http_status == 409

    def test_already_signed_up(self, booking_service, seated_booking, now):
        result = booking_service.book(
            make_request(
                booking_uid="seated",
                attendee=AttendeeInputData(email="FIRST@example.com", name="First"),
            ),
            now=now,
        )

        assert result.rejection.message == "Already signed up for time slot"
        assert result.rejection.code == BookingRejectionCode.CONFLICT

    def test_booking_not_found(self, booking_service, seated_booking, now):
        result = booking_service.book(make_request(booking_uid="missing"), now=now)

        assert result.rejection.message == "Booking not found"
        assert result.rejection.http_status == 404

    def test_cancelled_booking_is_not_found(self, booking_service, seated_booking, now):
        seated_booking.status = BookingStatus.CANCELLED
        seated_booking.save()

        result = booking_service.book(make_request(booking_uid="seated"), now=now)

        assert result.rejection.message == "Booking not found"

    def test_event_type_without_seats(self, booking_service, event_type, host, now):
        make_booking(event_type, host, dt(10), uid="plain")

        result = booking_service.book(make_request(booking_uid="plain"), now=now)

        assert result.rejection.message == "Event type does not have seats"
        assert result.rejection.code == BookingRejectionCode.NOT_FOUND

    def test_paid_seat_requests_payment(
        self, booking_service, payment_service, event_type, seated_booking, now
    ):
        event_type.price = 1000
        event_type.save()

        result = booking_service.book(make_request(booking_uid="seated"), now=now)

        assert result.payment_required
        payment_service.request_seat_payment.assert_called_once_with(
            booking=seated_booking, event_type=event_type, payer_email="guest@example.com"
        )

    def test_new_booking_with_more_attendees_than_seats(self, booking_service, event_type, now):
        event_type.seats_per_time_slot = 2
        event_type.save()

        result = booking_service.book(
            make_request(guests=["friend@example.com", "colleague@example.com"]), now=now
        )

        assert result.rejection.code == BookingRejectionCode.CONFLICT
        assert result.rejection.message == "This time slot only has 2 seat(s)."
        assert Booking.objects.count() == 0

    def test_new_booking_filling_every_seat(self, booking_service, event_type, now):
        event_type.seats_per_time_slot = 2
        event_type.save()

        result = booking_service.book(make_request(guests=["friend@example.com"]), now=now)

        assert result.succeeded
        assert result.booking.seats_used == 2


@pytest.mark.django_db
class TestBookingServiceReschedule:
    @pytest.fixture
    def original(self, event_type, host):
        booking = make_booking(event_type, host, dt(10), uid="original", location="Office")
        baker.make(Attendee, booking=booking, email="guest@example.com", name="Guest")
        baker.make(Attendee, booking=booking, email="friend@example.com", name="Friend")
        return booking

    def test_reschedule(
        self, booking_service, side_effects_service, original, now,
        django_capture_on_commit_callbacks,
    ):
        with django_capture_on_commit_callbacks(execute=True):
            result = booking_service.book(
                make_request(start=dt(14), reschedule_uid="original", reschedule_reason="Clash"),
                now=now,
            )

        booking = result.booking
        assert booking.start_time == dt(14)
        assert booking.from_reschedule == "original"
        assert booking.title == "Existing booking"
        assert booking.location == "Office"
        assert list(booking.attendees.values_list("email", flat=True)) == [
            "guest@example.com",
            "friend@example.com",
        ]
        original.refresh_from_db()
        assert original.status == BookingStatus.CANCELLED
        assert original.rescheduled is True
        assert original.cancellation_reason == "Clash"
        side_effects_service.on_booking_rescheduled.assert_called_once()
        side_effects_service.on_booking_created.assert_not_called()

    def test_reschedule_into_overlapping_slot_of_itself(self, booking_service, original, now):
        result = booking_service.book(
            make_request(start=dt(10, 15), reschedule_uid="original"), now=now
        )

        assert result.succeeded

    def test_reschedule_cancelled_booking(self, booking_service, original, now):
        original.status = BookingStatus.CANCELLED
        original.save()

        result = booking_service.book(
            make_request(start=dt(14), reschedule_uid="original"), now=now
        )

        assert result.rejection.code == BookingRejectionCode.CONFLICT

    def test_reschedule_missing_booking(self, booking_service, now):
        result = booking_service.book(make_request(start=dt(14), reschedule_uid="nope"), now=now)

        assert result.rejection.code == BookingRejectionCode.NOT_FOUND

    def test_host_reschedule_skips_confirmation(
        self, booking_service, event_type, host, original, now
    ):
        event_type.requires_confirmation = True
        event_type.save()

        by_host = booking_service.book(
            make_request(start=dt(14), reschedule_uid="original"), actor=host, now=now
        )

        assert by_host.booking.status == BookingStatus.ACCEPTED

    def test_guest_reschedule_needs_confirmation(
        self, booking_service, event_type, original, now
    ):
        event_type.requires_confirmation = True
        event_type.save()

        result = booking_service.book(
            make_request(start=dt(14), reschedule_uid="original"), now=now
        )

        assert result.booking.status == BookingStatus.PENDING

    def test_paid_original_needs_no_new_payment(
        self, booking_service, payment_service, event_type, original, now
    ):
        event_type.price = 1000
        event_type.save()
        original.paid = True
        original.save()

        result = booking_service.book(
            make_request(start=dt(14), reschedule_uid="original"), now=now
        )

        assert result.booking.status == BookingStatus.ACCEPTED
        assert result.booking.paid is True
        payment_service.request_booking_payment.assert_not_called()


@pytest.mark.django_db
class TestBookingServiceConfirmationAndPayment:
    def test_requires_confirmation(self, booking_service, event_type, now):
        event_type.requires_confirmation = True
        event_type.save()

        result = booking_service.book(make_request(), now=now)

        assert result.booking.status == BookingStatus.PENDING

    def test_confirmation_threshold(self, booking_service, event_type, now):
        event_type.requires_confirmation = True
        event_type.requires_confirmation_threshold = {"time": 2, "unit": "days"}
        event_type.save()

        soon = booking_service.book(make_request(), now=now)
        later = booking_service.book(make_request(start=dt(10, day=10)), now=now)

        assert soon.booking.status == BookingStatus.PENDING
        assert later.booking.status == BookingStatus.ACCEPTED

    def test_pending_bookings_dont_block_slots(self, booking_service, event_type, now):
        event_type.requires_confirmation = True
        event_type.save()
        booking_service.book(make_request(), now=now)

        result = booking_service.book(
            make_request(attendee=AttendeeInputData(email="other@example.com", name="Other")),
            now=now + datetime.timedelta(minutes=1),
        )

        assert result.succeeded

    def test_paid_event_type(self, booking_service, payment_service, event_type, now):
        event_type.price = 1000
        event_type.save()

        result = booking_service.book(make_request(), now=now)

        assert result.succeeded
        assert result.payment_required
        assert result.booking.status == BookingStatus.PENDING
        payment_service.request_booking_payment.assert_called_once_with(
            bookings=[result.booking], event_type=event_type, payer_email="guest@example.com"
        )
        assert result.payment == payment_service.request_booking_payment.return_value


@pytest.mark.django_db
class TestBookingServiceTransitions:
    def test_confirm(self, booking_service, side_effects_service, event_type, host,
                     django_capture_on_commit_callbacks):
        make_booking(event_type, host, dt(10), status=BookingStatus.PENDING, uid="pending")

        with django_capture_on_commit_callbacks(execute=True):
            booking = booking_service.confirm_booking("pending", actor=host)

        assert booking.status == BookingStatus.ACCEPTED
        change = side_effects_service.on_booking_status_changed.call_args[0][0]
        assert change.previous_status == BookingStatus.PENDING
        assert change.actor == host

    def test_confirm_accepted_booking(self, booking_service, event_type, host):
        make_booking(event_type, host, dt(10), uid="accepted")

        with pytest.raises(BookingStateTransitionError):
            booking_service.confirm_booking("accepted")

    def test_confirm_with_outstanding_payment(self, booking_service, event_type, host):
        payment = baker.make("payments.Payment", amount=100, currency="brl", payer_email="g@example.com")
        make_booking(
            event_type, host, dt(10), status=BookingStatus.PENDING, uid="unpaid", payment=payment
        )

        with pytest.raises(BookingStateTransitionError, match="awaiting payment"):
            booking_service.confirm_booking("unpaid")

    def test_reject(self, booking_service, event_type, host):
        make_booking(event_type, host, dt(10), status=BookingStatus.PENDING, uid="pending")

        booking = booking_service.reject_booking("pending", reason="Not a fit")

        assert booking.status == BookingStatus.REJECTED
        assert booking.rejection_reason == "Not a fit"

    def test_cancel(self, booking_service, event_type, host):
        make_booking(event_type, host, dt(10), uid="accepted")

        booking = booking_service.cancel_booking("accepted", reason="Sick")

        assert booking.status == BookingStatus.CANCELLED
        assert booking.cancellation_reason == "Sick"

    def test_cancel_cancelled(self, booking_service, event_type, host):
        make_booking(event_type, host, dt(10), status=BookingStatus.CANCELLED, uid="gone")

        with pytest.raises(BookingStateTransitionError):
            booking_service.cancel_booking("gone")

    def test_mark_booking_paid(self, booking_service, event_type, host, now):
        payment = baker.make("payments.Payment", amount=100, currency="brl", payer_email="g@example.com")
        make_booking(
            event_type, host, dt(10), status=BookingStatus.PENDING, uid="first", payment=payment
        )
        make_booking(
            event_type, host, dt(10, day=15), status=BookingStatus.PENDING, uid="second",
            payment=payment,
        )

        bookings = booking_service.mark_booking_paid(payment, now=now)

        assert {booking.uid for booking in bookings} == {"first", "second"}
        for booking in Booking.objects.filter(payment=payment):
            assert booking.paid is True
            assert booking.status == BookingStatus.ACCEPTED

    def test_mark_booking_paid_keeps_confirmation(self, booking_service, event_type, host, now):
        event_type.requires_confirmation = True
        event_type.save()
        payment = baker.make("payments.Payment", amount=100, currency="brl", payer_email="g@example.com")
        booking = make_booking(
            event_type, host, dt(10), status=BookingStatus.PENDING, uid="first", payment=payment
        )

        booking_service.mark_booking_paid(payment, now=now)

        booking.refresh_from_db()
        assert booking.paid is True
        assert booking.status == BookingStatus.PENDING


@pytest.mark.django_db(transaction=True)
def test_concurrent_seat_requests_never_overflow(event_type, host, now):
    if not connection.features.has_select_for_update:
        pytest.skip("Row locking is not supported by this database backend")

    event_type.seats_per_time_slot = 3
    event_type.save()
    make_booking(event_type, host, dt(10), uid="seated")
    service = BookingService(
        busy_times_service=None, payment_service=None, side_effects_service=None
    )
    requests_count = 5
    barrier = threading.Barrier(requests_count)

    def join_booking(index):
        barrier.wait()
        try:
            return service.book(
                make_request(
                    booking_uid="seated",
                    attendee=AttendeeInputData(
                        email=f"guest-{index}@example.com", name=f"Guest {index}"
                    ),
                ),
                now=now,
            )
        finally:
            connection.close()

    with ThreadPoolExecutor(max_workers=requests_count) as executor:
        results = list(executor.map(join_booking, range(requests_count)))

    assert len([result for result in results if result.succeeded]) == 3
    assert [result.rejection.message for result in results if not result.succeeded] == [
        "Booking seats are full",
        "Booking seats are full",
    ]
    assert Attendee.objects.filter(booking__uid="seated").count() == 3


@pytest.mark.django_db
class TestCheckSlotStillFree:
    @pytest.fixture
    def buffered_event_type(self, event_type):
        event_type.after_event_buffer = 15
        event_type.save()
        return event_type

    def test_requested_time_inside_existing_buffer(
        self, booking_service, buffered_event_type, host
    ):
        make_booking(buffered_event_type, host, dt(10))

        with pytest.raises(BookingConflictError, match="The requested time was just booked."):
            booking_service._check_slot_still_free(
                buffered_event_type, [host], [(dt(10, 30), dt(11))], []
            )

    def test_requested_buffer_reaching_existing_booking(self, booking_service, event_type, host):
        event_type.before_event_buffer = 10
        event_type.save()
        make_booking(event_type, host, dt(10))

        with pytest.raises(BookingConflictError):
            booking_service._check_slot_still_free(
                event_type, [host], [(dt(10, 35), dt(11, 5))], []
            )

    def test_time_after_buffer_is_free(self, booking_service, buffered_event_type, host):
        make_booking(buffered_event_type, host, dt(10))

        booking_service._check_slot_still_free(
            buffered_event_type, [host], [(dt(10, 45), dt(11, 15))], []
        )

    def test_excluded_booking_is_ignored(self, booking_service, buffered_event_type, host):
        booking = make_booking(buffered_event_type, host, dt(10))

        booking_service._check_slot_still_free(
            buffered_event_type, [host], [(dt(10, 30), dt(11))], [booking.uid]
        )

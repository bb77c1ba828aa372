import datetime
import logging
import uuid
from typing import TYPE_CHECKING, Annotated, Any

from django.db import IntegrityError, transaction
from django.db.models import Max, Q
from django.utils import timezone

from dateutil import rrule
from dependency_injector.wiring import Provide, inject

from bookings.constants import (
    ACTIVE_BOOKING_STATUSES,
    BookingStatus,
    ConfirmationThresholdUnit,
    CustomInputType,
    RecurringFrequency,
    SchedulingType,
)
from bookings.exceptions import (
    BookingConflictError,
    BookingDependencyError,
    BookingNotFoundError,
    BookingRejectionError,
    BookingSeatsFullError,
    BookingStateTransitionError,
    BookingUnavailableError,
    BookingValidationError,
)
from bookings.models import Attendee, Booking, EventType
from bookings.services.booking_limits import check_booking_limits
from bookings.services.booking_period import check_booking_period
from bookings.services.dataclasses import (
    AttendeeInputData,
    BookingRejection,
    BookingRequestData,
    BookingResult,
    BookingStatusChangeData,
)
from bookings.services.slots import is_available
from calendar_integration.exceptions import BusyTimesDependencyError
from calendar_integration.services.busy_times_service import get_busy_times_between
from calendar_integration.services.dataclasses import BusyTimesQueryUser
from common.exceptions import ServiceNotInjectedError
from users.models import User


if TYPE_CHECKING:
    from bookings.services.booking_side_effects_service import BookingSideEffectsService
    from calendar_integration.services.busy_times_service import BusyTimesService
    from payments.models import Payment
    from payments.services.payment_service import PaymentService


logger = logging.getLogger(__name__)

RRULE_FREQUENCIES = {
    RecurringFrequency.DAILY: rrule.DAILY,
    RecurringFrequency.WEEKLY: rrule.WEEKLY,
    RecurringFrequency.MONTHLY: rrule.MONTHLY,
    RecurringFrequency.YEARLY: rrule.YEARLY,
}

THRESHOLD_UNITS = {
    ConfirmationThresholdUnit.MINUTES: datetime.timedelta(minutes=1),
    ConfirmationThresholdUnit.HOURS: datetime.timedelta(hours=1),
    ConfirmationThresholdUnit.DAYS: datetime.timedelta(days=1),
}


def generate_booking_uid(
    host_identifier: str, start_time: datetime.datetime, requested_at: datetime.datetime
) -> str:
    """
    Traceable to the host, the slot and the moment of the request. Retrying the same request
    later yields a different uid.
    """
    requested_at_ms = int(requested_at.timestamp() * 1000)
    seed = f"{host_identifier}:{start_time.astimezone(datetime.UTC).isoformat()}:{requested_at_ms}"
    return uuid.uuid5(uuid.NAMESPACE_URL, seed).hex


def get_recurring_occurrences(
    event_type: EventType,
    start_time: datetime.datetime,
    end_time: datetime.datetime,
    requested_count: int | None,
) -> list[tuple[datetime.datetime, datetime.datetime]]:
    """
    Occurrences of a recurring booking, the first one being the requested slot. The series
    never has more occurrences than the event type allows.
    """
    rule = event_type.recurring_event or {}
    configured_count = int(rule.get("count") or 1)
    count = min(requested_count or configured_count, configured_count)
    try:
        frequency = RRULE_FREQUENCIES[rule.get("freq", RecurringFrequency.WEEKLY)]
    except KeyError as e:
        raise BookingValidationError(
            f"Unsupported recurring frequency: {rule.get('freq')}"
        ) from e

    duration = end_time - start_time
    return [
        (occurrence, occurrence + duration)
        for occurrence in rrule.rrule(
            frequency,
            dtstart=start_time,
            interval=int(rule.get("interval") or 1),
            count=max(count, 1),
        )
    ]


def requires_confirmation(
    event_type: EventType, start_time: datetime.datetime, now: datetime.datetime
) -> bool:
    """
    Confirmation is skipped when the slot starts further away than the configured threshold.
    """
    if not event_type.requires_confirmation:
        return False
    threshold = event_type.requires_confirmation_threshold
    if not threshold:
        return True
    unit = THRESHOLD_UNITS.get(threshold.get("unit"), THRESHOLD_UNITS[ConfirmationThresholdUnit.MINUTES])
    # whole units, truncated
    elapsed_units = int((start_time - now) / unit)
    return elapsed_units <= int(threshold.get("time", 0))


def validate_custom_inputs(event_type: EventType, responses: dict[str, Any]):
    for custom_input in event_type.custom_inputs or []:
        label = custom_input.get("label", "")
        input_type = custom_input.get("type", CustomInputType.TEXT)
        value = responses.get(label)

        if custom_input.get("required"):
            if input_type == CustomInputType.BOOL:
                if value is not True:
                    raise BookingValidationError(f"Missing required input: {label}")
            elif value is None or (isinstance(value, str) and not value.strip()):
                raise BookingValidationError(f"Missing required input: {label}")

        if input_type == CustomInputType.NUMBER and value not in (None, ""):
            try:
                float(value)
            except (TypeError, ValueError) as e:
                raise BookingValidationError(f"{label} must be a number.") from e


class BookingService:
    """
    Admits booking requests: validates them, picks the hosts, checks availability and seat
    capacity, and writes bookings as transitions over the booking store.

    Expected refusals are returned as a ``BookingRejection`` on the result. Side effects run
    after the transaction commits and never change the outcome.
    """

    @inject
    def __init__(
        self,
        busy_times_service: Annotated["BusyTimesService | None", Provide["busy_times_service"]] = None,
        payment_service: Annotated["PaymentService | None", Provide["payment_service"]] = None,
        side_effects_service: Annotated[
            "BookingSideEffectsService | None", Provide["booking_side_effects_service"]
        ] = None,
    ):
        self.busy_times_service = busy_times_service
        self.payment_service = payment_service
        self.side_effects_service = side_effects_service

    def book(
        self,
        request: BookingRequestData,
        actor: User | None = None,
        now: datetime.datetime | None = None,
    ) -> BookingResult:
        now = now or timezone.now()
        try:
            return self._book(request, actor, now)
        except BookingRejectionError as e:
            logger.info(
                "Booking for event type %s rejected with %s: %s",
                request.event_type_slug,
                e.code,
                e.message,
            )
            return BookingResult(rejection=BookingRejection.from_error(e))

    def _book(
        self, request: BookingRequestData, actor: User | None, now: datetime.datetime
    ) -> BookingResult:
        event_type = self._get_event_type(request.event_type_slug)
        self._validate_request(event_type, request)
        check_booking_period(event_type, request.start_time, now)

        if request.booking_uid:
            return self._add_seat(event_type, request, now)

        original_booking = None
        if request.reschedule_uid:
            original_booking = self._get_booking_to_reschedule(event_type, request.reschedule_uid)

        hosts = self._get_candidate_hosts(event_type, request.usernames)

        occurrences = [(request.start_time, request.end_time)]
        if request.recurring_event_id and event_type.recurring_event and not original_booking:
            occurrences = get_recurring_occurrences(
                event_type, request.start_time, request.end_time, request.recurring_count
            )

        exclude_booking_uids = [original_booking.uid] if original_booking else []
        booking_hosts = self.ensure_available_users(
            event_type, hosts, occurrences, exclude_booking_uids=exclude_booking_uids
        )

        return self._create_bookings(
            event_type=event_type,
            request=request,
            hosts=booking_hosts,
            occurrences=occurrences,
            original_booking=original_booking,
            actor=actor,
            now=now,
        )

    def _get_event_type(self, slug: str) -> EventType:
        try:
            return EventType.objects.select_related("owner").get(slug=slug)
        except EventType.DoesNotExist as e:
            raise BookingNotFoundError("Event type not found") from e

    def _validate_request(self, event_type: EventType, request: BookingRequestData):
        if request.end_time <= request.start_time:
            raise BookingValidationError("End time must be after start time.")
        if not request.attendee.email:
            raise BookingValidationError("Attendee email is required.")
        if request.end_time - request.start_time != event_type.length:
            raise BookingValidationError(
                f"Bookings of this event type must last {event_type.length_minutes} minutes."
            )
        if request.recurring_count is not None and request.recurring_count < 1:
            raise BookingValidationError("Recurring count must be at least 1.")
        validate_custom_inputs(event_type, request.responses)

    def _get_booking_to_reschedule(self, event_type: EventType, uid: str) -> Booking:
        booking = (
            Booking.objects.select_related("event_type", "host", "payment")
            .prefetch_related("attendees")
            .filter(uid=uid)
            .first()
        )
        if booking is None:
            raise BookingNotFoundError("Booking to reschedule not found")
        if booking.event_type_id != event_type.pk:
            raise BookingValidationError("A booking can only be rescheduled within its event type.")
        if booking.status not in ACTIVE_BOOKING_STATUSES:
            raise BookingConflictError("The booking being rescheduled is no longer active.")
        return booking

    def _get_candidate_hosts(self, event_type: EventType, usernames: list[str]) -> list[User]:
        if not usernames:
            return event_type.get_host_users()

        users_by_username = {u.username: u for u in User.objects.filter(username__in=usernames)}
        # keep the order the request listed them in
        hosts = [users_by_username[name] for name in usernames if name in users_by_username]
        if not hosts:
            raise BookingNotFoundError("No users found for this event type.")
        return hosts

    def ensure_available_users(
        self,
        event_type: EventType,
        hosts: list[User],
        occurrences: list[tuple[datetime.datetime, datetime.datetime]],
        exclude_booking_uids: list[str] | None = None,
    ) -> list[User]:
        """
        Hosts that will take the booking. Round robin picks the first host, in priority order,
        free for every occurrence. Other scheduling types need all hosts free.
        """
        if self.busy_times_service is None:
            raise ServiceNotInjectedError("busy_times_service")

        before = datetime.timedelta(minutes=event_type.before_event_buffer)
        after = datetime.timedelta(minutes=event_type.after_event_buffer)
        date_from = min(start for start, _end in occurrences) - before
        date_to = max(end for _start, end in occurrences) + after

        try:
            busy_times = self.busy_times_service.get_busy_times_by_user_and_day(
                [BusyTimesQueryUser.from_user(host) for host in hosts],
                date_from,
                date_to,
                exclude_booking_uids=exclude_booking_uids or [],
            )
        except BusyTimesDependencyError as e:
            raise BookingDependencyError() from e

        def is_host_available(host: User) -> bool:
            host_busy_times = busy_times.get(host.pk, {})
            # stops at the first conflicting occurrence
            for start, end in occurrences:
                buffered_start, buffered_end = start - before, end + after
                candidates = get_busy_times_between(host_busy_times, buffered_start, buffered_end)
                if not is_available(candidates, buffered_start, buffered_end):
                    return False
            return True

        if event_type.scheduling_type == SchedulingType.ROUND_ROBIN:
            for host in hosts:
                if is_host_available(host):
                    return [host]
            raise BookingUnavailableError("No available users found.")

        if all(is_host_available(host) for host in hosts):
            return hosts
        raise BookingUnavailableError("No available users found.")

    def _build_attendees(
        self,
        event_type: EventType,
        request: BookingRequestData,
        hosts: list[User],
        original_booking: Booking | None,
    ) -> list[AttendeeInputData]:
        if original_booking is not None:
            attendees = [
                AttendeeInputData(
                    email=a.email, name=a.name, time_zone=a.time_zone, locale=a.locale
                )
                for a in original_booking.attendees.all()
            ]
        else:
            attendees = [
                AttendeeInputData(
                    email=request.attendee.email,
                    name=request.attendee.name,
                    time_zone=request.attendee.time_zone or request.time_zone,
                    locale=request.attendee.locale or request.language,
                ),
                *(
                    AttendeeInputData(email=guest, name="", time_zone=request.time_zone)
                    for guest in request.guests
                ),
            ]
            if event_type.scheduling_type == SchedulingType.COLLECTIVE:
                # the other hosts join as attendees so the booking blocks their time too
                attendees.extend(
                    AttendeeInputData(
                        email=host.email,
                        name=host.get_full_name(),
                        time_zone=host.time_zone,
                        locale=host.locale,
                    )
                    for host in hosts[1:]
                )

        unique_attendees = []
        seen_emails = set()
        for attendee in attendees:
            email = attendee.email.lower()
            if email in seen_emails:
                continue
            seen_emails.add(email)
            unique_attendees.append(attendee)
        return unique_attendees

    def _check_slot_still_free(
        self,
        event_type: EventType,
        hosts: list[User],
        occurrences: list[tuple[datetime.datetime, datetime.datetime]],
        exclude_booking_uids: list[str],
    ):
        before = datetime.timedelta(minutes=event_type.before_event_buffer)
        after = datetime.timedelta(minutes=event_type.after_event_buffer)
        longest_buffers = EventType.objects.aggregate(
            before=Max("before_event_buffer"), after=Max("after_event_buffer")
        )
        # other bookings can reach into the requested range through their own buffers
        reach_before = datetime.timedelta(minutes=longest_buffers["after"] or 0)
        reach_after = datetime.timedelta(minutes=longest_buffers["before"] or 0)

        for host in hosts:
            host_bookings = (
                Booking.objects.filter(
                    Q(host=host) | Q(attendees__email__iexact=host.email),
                    status=BookingStatus.ACCEPTED,
                )
                .exclude(uid__in=exclude_booking_uids)
                .select_related("event_type")
                .distinct()
            )
            for start, end in occurrences:
                buffered_start, buffered_end = start - before, end + after
                nearby_bookings = host_bookings.overlapping(
                    buffered_start - reach_before, buffered_end + reach_after
                )
                busy_times = [booking.to_busy_interval() for booking in nearby_bookings]
                if not is_available(busy_times, buffered_start, buffered_end):
                    raise BookingConflictError("The requested time was just booked.")

    def _create_bookings(
        self,
        event_type: EventType,
        request: BookingRequestData,
        hosts: list[User],
        occurrences: list[tuple[datetime.datetime, datetime.datetime]],
        original_booking: Booking | None,
        actor: User | None,
        now: datetime.datetime,
    ) -> BookingResult:
        organizer = hosts[0]
        exclude_booking_uids = [original_booking.uid] if original_booking else []
        attendees = self._build_attendees(event_type, request, hosts, original_booking)
        if event_type.has_seats and len(attendees) > event_type.seats_per_time_slot:
            raise BookingSeatsFullError(
                f"This time slot only has {event_type.seats_per_time_slot} seat(s)."
            )

        owner_is_rescheduling = (
            original_booking is not None
            and actor is not None
            and original_booking.host_id == actor.pk
        )
        payment_required = event_type.is_paid and not (original_booking and original_booking.paid)
        is_confirmed_by_default = (
            not requires_confirmation(event_type, request.start_time, now) and not payment_required
        ) or owner_is_rescheduling

        payment: "Payment | None" = None
        try:
            with transaction.atomic():
                # serializes admissions for the same hosts
                list(User.objects.select_for_update().filter(pk__in=[h.pk for h in hosts]))

                if original_booking is not None:
                    original_booking = (
                        Booking.objects.select_for_update()
                        .select_related("event_type", "host", "payment")
                        .get(pk=original_booking.pk)
                    )
                    if original_booking.status not in ACTIVE_BOOKING_STATUSES:
                        raise BookingConflictError(
                            "The booking being rescheduled is no longer active."
                        )

                check_booking_limits(
                    event_type,
                    organizer,
                    request.start_time,
                    exclude_booking_uids=exclude_booking_uids,
                )
                self._check_slot_still_free(event_type, hosts, occurrences, exclude_booking_uids)

                bookings = []
                for start, end in occurrences:
                    booking = Booking.objects.create(
                        uid=generate_booking_uid(organizer.username, start, now),
                        event_type=event_type,
                        host=organizer,
                        title=(
                            f"{event_type.title} between {organizer.get_full_name()} "
                            f"and {request.attendee.name or 'Nameless'}"
                        ),
                        description=request.notes,
                        start_time=start,
                        end_time=end,
                        status=(
                            BookingStatus.ACCEPTED
                            if is_confirmed_by_default
                            else BookingStatus.PENDING
                        ),
                        recurring_event_id=request.recurring_event_id or "",
                        responses=request.responses,
                        location=request.location or event_type.location,
                    )
                    if original_booking is not None:
                        booking.title = original_booking.title
                        booking.location = original_booking.location
                        booking.paid = original_booking.paid
                        booking.payment = original_booking.payment
                        booking.from_reschedule = original_booking.uid
                        booking.recurring_event_id = original_booking.recurring_event_id
                        booking.save()
                    Attendee.objects.bulk_create(
                        [
                            Attendee(
                                booking=booking,
                                email=attendee.email,
                                name=attendee.name,
                                time_zone=attendee.time_zone,
                                locale=attendee.locale,
                            )
                            for attendee in attendees
                        ]
                    )
                    bookings.append(booking)

                if original_booking is not None:
                    original_booking.status = BookingStatus.CANCELLED
                    original_booking.rescheduled = True
                    original_booking.cancellation_reason = request.reschedule_reason
                    original_booking.save(
                        update_fields=["status", "rescheduled", "cancellation_reason", "modified"]
                    )

                if payment_required:
                    if self.payment_service is None:
                        raise ServiceNotInjectedError("payment_service")
                    payment = self.payment_service.request_booking_payment(
                        bookings=bookings,
                        event_type=event_type,
                        payer_email=request.attendee.email,
                    )
        except IntegrityError as e:
            logger.warning("Booking for event type %s hit a uniqueness conflict", event_type.slug)
            raise BookingConflictError("booking.conflict") from e

        result = BookingResult(
            bookings=bookings,
            payment=payment,
            payment_required=payment_required,
            rescheduled_from=original_booking,
        )

        if payment is not None and self.payment_service is not None:
            payment_service = self.payment_service
            transaction.on_commit(lambda: payment_service.send_payment_request(payment))

        if self.side_effects_service is not None:
            side_effects_service = self.side_effects_service
            if original_booking is not None:
                transaction.on_commit(
                    lambda: side_effects_service.on_booking_rescheduled(
                        bookings[0], original_booking
                    )
                )
            else:
                transaction.on_commit(lambda: side_effects_service.on_booking_created(result))

        logger.info(
            "Created %d booking(s) for event type %s with host %s (%s)",
            len(bookings),
            event_type.slug,
            organizer.username,
            bookings[0].status,
        )
        return result

    def _add_seat(
        self, event_type: EventType, request: BookingRequestData, now: datetime.datetime
    ) -> BookingResult:
        if not event_type.has_seats:
            raise BookingNotFoundError("Event type does not have seats")

        payment: "Payment | None" = None
        try:
            with transaction.atomic():
                # capacity is checked and the attendee written while the booking row is locked
                booking = (
                    Booking.objects.select_for_update()
                    .filter(uid=request.booking_uid, event_type=event_type)
                    .exclude(status__in=[BookingStatus.CANCELLED, BookingStatus.REJECTED])
                    .first()
                )
                if booking is None:
                    raise BookingNotFoundError("Booking not found")

                existing_emails = {
                    email.lower() for email in booking.attendees.values_list("email", flat=True)
                }
                if len(existing_emails) >= event_type.seats_per_time_slot:
                    raise BookingSeatsFullError("Booking seats are full")
                if request.attendee.email.lower() in existing_emails:
                    raise BookingConflictError("Already signed up for time slot")

                attendee = Attendee.objects.create(
                    booking=booking,
                    email=request.attendee.email,
                    name=request.attendee.name,
                    time_zone=request.attendee.time_zone or request.time_zone,
                    locale=request.attendee.locale or request.language,
                )

                if event_type.is_paid:
                    if self.payment_service is None:
                        raise ServiceNotInjectedError("payment_service")
                    payment = self.payment_service.request_seat_payment(
                        booking=booking,
                        event_type=event_type,
                        payer_email=attendee.email,
                    )
        except IntegrityError as e:
            raise BookingConflictError("Already signed up for time slot") from e

        result = BookingResult(
            bookings=[booking],
            payment=payment,
            payment_required=payment is not None,
            seat_added=True,
        )
        if payment is not None and self.payment_service is not None:
            payment_service = self.payment_service
            transaction.on_commit(lambda: payment_service.send_payment_request(payment))
        if self.side_effects_service is not None:
            side_effects_service = self.side_effects_service
            transaction.on_commit(lambda: side_effects_service.on_seat_added(booking, attendee))

        logger.info("Added seat for %s to booking %s", attendee.email, booking.uid)
        return result

    def _transition(
        self,
        booking_uid: str,
        allowed_statuses: set[str],
        new_status: str,
        action: str,
        actor: User | None,
        reason: str = "",
        extra_check=None,
    ) -> Booking:
        with transaction.atomic():
            booking = (
                Booking.objects.select_for_update()
                .select_related("event_type", "host", "payment")
                .filter(uid=booking_uid)
                .first()
            )
            if booking is None:
                raise BookingNotFoundError("Booking not found")
            if booking.status not in allowed_statuses:
                raise BookingStateTransitionError(booking.uid, booking.status, action)
            if extra_check is not None:
                extra_check(booking)

            previous_status = booking.status
            booking.status = new_status
            if new_status == BookingStatus.CANCELLED:
                booking.cancellation_reason = reason
            elif new_status == BookingStatus.REJECTED:
                booking.rejection_reason = reason
            booking.save()

        change = BookingStatusChangeData(
            booking=booking, previous_status=previous_status, actor=actor, reason=reason
        )
        if self.side_effects_service is not None:
            side_effects_service = self.side_effects_service
            transaction.on_commit(lambda: side_effects_service.on_booking_status_changed(change))

        logger.info(
            "Booking %s moved from %s to %s", booking.uid, previous_status, booking.status
        )
        return booking

    def confirm_booking(self, booking_uid: str, actor: User | None = None) -> Booking:
        def ensure_paid(booking: Booking):
            if booking.payment_outstanding:
                raise BookingStateTransitionError(booking.uid, "awaiting payment", "confirmed")

        return self._transition(
            booking_uid,
            {BookingStatus.PENDING},
            BookingStatus.ACCEPTED,
            "confirmed",
            actor,
            extra_check=ensure_paid,
        )

    def reject_booking(self, booking_uid: str, actor: User | None = None, reason: str = "") -> Booking:
        return self._transition(
            booking_uid, {BookingStatus.PENDING}, BookingStatus.REJECTED, "rejected", actor, reason
        )

    def cancel_booking(self, booking_uid: str, actor: User | None = None, reason: str = "") -> Booking:
        return self._transition(
            booking_uid,
            set(ACTIVE_BOOKING_STATUSES),
            BookingStatus.CANCELLED,
            "cancelled",
            actor,
            reason,
        )

    def mark_booking_paid(
        self, payment: "Payment", now: datetime.datetime | None = None
    ) -> list[Booking]:
        """
        Flags the bookings of an approved payment as paid. Pending bookings that don't need the
        host's confirmation are accepted.
        """
        now = now or timezone.now()
        changes = []
        with transaction.atomic():
            bookings = list(
                Booking.objects.select_for_update()
                .select_related("event_type", "host")
                .filter(payment=payment)
            )
            for booking in bookings:
                if booking.paid:
                    continue
                booking.paid = True
                previous_status = booking.status
                if booking.status == BookingStatus.PENDING and not requires_confirmation(
                    booking.event_type, booking.start_time, now
                ):
                    booking.status = BookingStatus.ACCEPTED
                booking.save(update_fields=["paid", "status", "modified"])
                if booking.status != previous_status:
                    changes.append(
                        BookingStatusChangeData(booking=booking, previous_status=previous_status)
                    )

        if self.side_effects_service is not None:
            side_effects_service = self.side_effects_service
            for change in changes:
                transaction.on_commit(
                    lambda change=change: side_effects_service.on_booking_status_changed(change)
                )
        return bookings

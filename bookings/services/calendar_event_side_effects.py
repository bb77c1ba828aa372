import logging

from bookings.constants import BookingStatus
from bookings.models import Attendee, Booking, BookingReference
from bookings.services.dataclasses import BookingResult, BookingStatusChangeData
from calendar_integration.models import SelectedCalendar
from calendar_integration.services.calendar_adapter_factory import (
    get_calendar_adapter_for_credential,
)
from calendar_integration.services.dataclasses import (
    CalendarEventAdapterInputData,
    EventAttendeeData,
)


logger = logging.getLogger(__name__)


class BookingCalendarEventsSideEffectsService:
    """
    Mirrors accepted bookings into the host's destination calendar and keeps the remote events
    in step with reschedules and cancellations.
    """

    def _get_destination_calendar(self, booking: Booking) -> SelectedCalendar | None:
        return (
            SelectedCalendar.objects.filter(
                user_id=booking.host_id,
                is_destination=True,
                credential__isnull=False,
                credential__invalid=False,
            )
            .select_related("credential")
            .first()
        )

    def _build_event_data(self, booking: Booking, calendar_external_id: str):
        return CalendarEventAdapterInputData(
            calendar_external_id=calendar_external_id,
            title=booking.title,
            description=booking.description,
            start_time=booking.start_time,
            end_time=booking.end_time,
            time_zone=booking.event_type.time_zone,
            location=booking.location,
            attendees=[
                EventAttendeeData(email=attendee.email, name=attendee.name)
                for attendee in booking.attendees.all()
            ],
            request_conference=booking.event_type.request_conference,
            request_id=booking.uid,
        )

    def create_booking_events(self, booking: Booking) -> BookingReference | None:
        destination = self._get_destination_calendar(booking)
        if destination is None:
            logger.info("Host of booking %s has no destination calendar", booking.uid)
            return None

        adapter = get_calendar_adapter_for_credential(destination.credential)
        remote_event = adapter.create_event(
            self._build_event_data(booking, destination.external_id)
        )
        return BookingReference.objects.create(
            booking=booking,
            provider=destination.integration,
            credential=destination.credential,
            calendar_external_id=remote_event.calendar_external_id,
            external_id=remote_event.external_id,
            meeting_url=remote_event.meeting_url or "",
        )

    def update_booking_events(self, booking: Booking, references=None):
        for reference in references if references is not None else booking.references.all():
            if reference.credential is None:
                continue
            adapter = get_calendar_adapter_for_credential(reference.credential)
            remote_event = adapter.update_event(
                reference.calendar_external_id,
                reference.external_id,
                self._build_event_data(booking, reference.calendar_external_id),
            )
            reference.booking = booking
            reference.meeting_url = remote_event.meeting_url or reference.meeting_url
            reference.save()

    def delete_booking_events(self, booking: Booking):
        for reference in booking.references.select_related("credential"):
            if reference.credential is not None:
                adapter = get_calendar_adapter_for_credential(reference.credential)
                adapter.delete_event(reference.calendar_external_id, reference.external_id)
            reference.delete()

    def on_booking_created(self, result: BookingResult) -> None:
        for booking in result.bookings:
            if booking.status == BookingStatus.ACCEPTED:
                self.create_booking_events(booking)

    def on_booking_rescheduled(self, booking: Booking, original_booking: Booking) -> None:
        references = list(original_booking.references.select_related("credential"))
        if not references:
            if booking.status == BookingStatus.ACCEPTED:
                self.create_booking_events(booking)
            return
        # the remote event moves to the new time and now belongs to the new booking
        self.update_booking_events(booking, references)

    def on_seat_added(self, booking: Booking, attendee: Attendee) -> None:
        self.update_booking_events(booking)

    def on_booking_status_changed(self, change: BookingStatusChangeData) -> None:
        booking = change.booking
        if booking.status == BookingStatus.ACCEPTED and not booking.references.exists():
            self.create_booking_events(booking)
        elif booking.status in (BookingStatus.CANCELLED, BookingStatus.REJECTED):
            self.delete_booking_events(booking)

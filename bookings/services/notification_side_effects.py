import logging
from typing import Annotated

from dependency_injector.wiring import Provide, inject
from vintasend.services.notification_service import (
    NotificationContextDict,
    NotificationService,
    NotificationTypes,
)

from bookings.constants import BookingStatus
from bookings.models import Attendee, Booking
from bookings.services.dataclasses import BookingResult, BookingStatusChangeData


logger = logging.getLogger(__name__)

EMAIL_TEMPLATES_DIR = "bookings/emails"


class BookingNotificationsSideEffectsService:
    """Emails hosts and attendees about what happened to their bookings."""

    @inject
    def __init__(
        self,
        notification_service: Annotated[NotificationService, Provide["notification_service"]],
    ):
        self.notification_service = notification_service

    def _notify_host(self, booking: Booking, template: str, title: str):
        self.notification_service.create_notification(
            user_id=booking.host_id,
            notification_type=NotificationTypes.EMAIL.value,
            title=title,
            body_template=f"{EMAIL_TEMPLATES_DIR}/{template}.body.html",
            subject_template=f"{EMAIL_TEMPLATES_DIR}/{template}.subject.txt",
            preheader_template=f"{EMAIL_TEMPLATES_DIR}/{template}.pre_header.txt",
            context_name="booking_context",
            context_kwargs=NotificationContextDict(
                {"booking_id": booking.pk, "recipient_email": booking.host.email}
            ),
        )

    def _notify_attendee(self, booking: Booking, attendee: Attendee, template: str, title: str):
        first_name, _, last_name = attendee.name.partition(" ")
        self.notification_service.create_one_off_notification(
            email_or_phone=attendee.email,
            first_name=first_name,
            last_name=last_name,
            notification_type=NotificationTypes.EMAIL.value,
            title=title,
            body_template=f"{EMAIL_TEMPLATES_DIR}/{template}.body.html",
            subject_template=f"{EMAIL_TEMPLATES_DIR}/{template}.subject.txt",
            preheader_template=f"{EMAIL_TEMPLATES_DIR}/{template}.pre_header.txt",
            context_name="booking_context",
            context_kwargs=NotificationContextDict(
                {"booking_id": booking.pk, "recipient_email": attendee.email}
            ),
        )

    def _notify_everyone(self, booking: Booking, template: str, title: str):
        self._notify_host(booking, template, title)
        host_email = booking.host.email.lower()
        for attendee in booking.attendees.all():
            if attendee.email.lower() == host_email:
                continue
            self._notify_attendee(booking, attendee, template, title)

    def on_booking_created(self, result: BookingResult) -> None:
        booking = result.booking
        if booking is None:
            return
        # a recurring series gets one email about its first occurrence
        if booking.status == BookingStatus.ACCEPTED:
            self._notify_everyone(booking, "booking_scheduled", "Booking scheduled")
        else:
            self._notify_everyone(booking, "booking_requested", "Booking requested")

    def on_booking_rescheduled(self, booking: Booking, original_booking: Booking) -> None:
        self._notify_everyone(booking, "booking_rescheduled", "Booking rescheduled")

    def on_seat_added(self, booking: Booking, attendee: Attendee) -> None:
        self._notify_host(booking, "booking_seat_added", "New attendee")
        self._notify_attendee(booking, attendee, "booking_scheduled", "Booking scheduled")

    def on_booking_status_changed(self, change: BookingStatusChangeData) -> None:
        booking = change.booking
        if booking.status == BookingStatus.ACCEPTED:
            self._notify_everyone(booking, "booking_scheduled", "Booking scheduled")
        elif booking.status == BookingStatus.CANCELLED:
            self._notify_everyone(booking, "booking_cancelled", "Booking cancelled")
        elif booking.status == BookingStatus.REJECTED:
            for attendee in booking.attendees.all():
                self._notify_attendee(booking, attendee, "booking_rejected", "Booking rejected")

    def send_booking_reminder(self, booking: Booking):
        self._notify_everyone(booking, "booking_reminder", "Booking reminder")

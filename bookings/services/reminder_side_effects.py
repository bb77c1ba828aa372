import datetime
import logging
from collections.abc import Iterable

from django.utils import timezone

from bookings.constants import BookingStatus
from bookings.models import Booking
from bookings.services.dataclasses import BookingResult, BookingStatusChangeData
from bookings.tasks import send_booking_reminder


logger = logging.getLogger(__name__)


class BookingRemindersSideEffectsService:
    """Schedules reminder emails at fixed offsets before accepted bookings start."""

    def __init__(self, reminder_minutes_before: Iterable[int] = ()):
        self.reminder_minutes_before = sorted(set(reminder_minutes_before), reverse=True)

    def schedule_reminders(self, booking: Booking, now: datetime.datetime | None = None):
        if booking.status != BookingStatus.ACCEPTED:
            return
        now = now or timezone.now()
        for minutes in self.reminder_minutes_before:
            eta = booking.start_time - datetime.timedelta(minutes=minutes)
            if eta <= now:
                continue
            send_booking_reminder.apply_async(
                kwargs={"booking_id": booking.pk, "start_time": booking.start_time.isoformat()},
                eta=eta,
            )
            logger.debug("Scheduled reminder for booking %s at %s", booking.uid, eta)

    def on_booking_created(self, result: BookingResult) -> None:
        for booking in result.bookings:
            self.schedule_reminders(booking)

    def on_booking_rescheduled(self, booking: Booking, original_booking: Booking) -> None:
        self.schedule_reminders(booking)

    def on_booking_status_changed(self, change: BookingStatusChangeData) -> None:
        if change.booking.status == BookingStatus.ACCEPTED:
            self.schedule_reminders(change.booking)

import datetime
import logging
from typing import TYPE_CHECKING, Annotated

from dependency_injector.wiring import Provide, inject

from booking_engine.celery import app
from bookings.constants import BookingStatus
from bookings.models import Booking


if TYPE_CHECKING:
    from bookings.services.notification_side_effects import (
        BookingNotificationsSideEffectsService,
    )


logger = logging.getLogger(__name__)


@app.task
@inject
def send_booking_reminder(
    booking_id: int,
    start_time: str,
    notifications_service: Annotated[
        "BookingNotificationsSideEffectsService | None",
        Provide["booking_notifications_side_effects_service"],
    ] = None,
):
    """
    Reminds host and attendees of an upcoming booking. Skipped when the booking is no longer
    accepted or was moved since the reminder was scheduled.
    """
    if not notifications_service:
        return

    booking = (
        Booking.objects.select_related("host")
        .filter(id=booking_id, status=BookingStatus.ACCEPTED)
        .first()
    )
    if not booking:
        return

    if booking.start_time != datetime.datetime.fromisoformat(start_time):
        logger.info("Skipping stale reminder for booking %s", booking.uid)
        return

    notifications_service.send_booking_reminder(booking)

from typing import Any

from vintasend.exceptions import NotificationContextGenerationError
from vintasend.services.notification_service import register_context

from bookings.models import Booking


@register_context("booking_context")
def booking_context(booking_id: int, recipient_email: str = "") -> dict[str, Any]:
    """
    Provides a context for booking notifications, sent both to hosts and attendees.
    """
    try:
        booking = (
            Booking.objects.select_related("event_type", "host", "payment")
            .prefetch_related("attendees")
            .get(id=booking_id)
        )
    except Booking.DoesNotExist as e:
        raise NotificationContextGenerationError("Invalid booking ID") from e

    return {
        "booking": {
            "uid": booking.uid,
            "title": booking.title,
            "description": booking.description,
            "status": booking.status,
            "start_time": booking.start_time,
            "end_time": booking.end_time,
            "location": booking.location,
            "cancellation_reason": booking.cancellation_reason,
            "rejection_reason": booking.rejection_reason,
            "from_reschedule": booking.from_reschedule,
            "checkout_url": booking.payment.checkout_url if booking.payment else "",
            "meeting_url": next(
                (ref.meeting_url for ref in booking.references.all() if ref.meeting_url), ""
            ),
        },
        "event_type": {
            "title": booking.event_type.title,
            "time_zone": booking.event_type.time_zone,
            "length_minutes": booking.event_type.length_minutes,
        },
        "host": {
            "name": booking.host.get_full_name(),
            "email": booking.host.email,
        },
        "attendees": [
            {"name": attendee.name, "email": attendee.email} for attendee in booking.attendees.all()
        ],
        "recipient_email": recipient_email,
    }

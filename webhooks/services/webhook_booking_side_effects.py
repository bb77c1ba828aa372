from typing import TYPE_CHECKING, Annotated

from dependency_injector.wiring import Provide, inject

from bookings.constants import BookingStatus
from bookings.models import Attendee, Booking
from bookings.services.dataclasses import BookingResult, BookingStatusChangeData
from webhooks.constants import WebhookTrigger
from webhooks.services.payloads import BookingWebhookPayload


if TYPE_CHECKING:
    from webhooks.services import WebhookService


STATUS_CHANGE_TRIGGERS = {
    BookingStatus.ACCEPTED: WebhookTrigger.BOOKING_CREATED,
    BookingStatus.CANCELLED: WebhookTrigger.BOOKING_CANCELLED,
    BookingStatus.REJECTED: WebhookTrigger.BOOKING_REJECTED,
}


def build_booking_payload(
    booking: Booking, reason: str | None = None, original_booking: Booking | None = None
) -> BookingWebhookPayload:
    event_type = booking.event_type
    return {
        "uid": booking.uid,
        "status": booking.status,
        "title": booking.title,
        "description": booking.description,
        "start_time": booking.start_time.isoformat(),
        "end_time": booking.end_time.isoformat(),
        "location": booking.location,
        "host": booking.host.username,
        "attendees": [
            {"email": a.email, "name": a.name, "time_zone": a.time_zone}
            for a in booking.attendees.all()
        ],
        "responses": booking.responses,
        "recurring_event_id": booking.recurring_event_id or None,
        "paid": booking.paid,
        "reason": reason,
        "event_type_slug": event_type.slug,
        "event_title": event_type.title,
        "event_description": event_type.description,
        "length_minutes": event_type.length_minutes,
        "requires_confirmation": event_type.requires_confirmation,
        "price": event_type.price,
        "currency": event_type.currency,
        "reschedule_uid": original_booking.uid if original_booking else None,
        "reschedule_start_time": (
            original_booking.start_time.isoformat() if original_booking else None
        ),
        "reschedule_end_time": original_booking.end_time.isoformat() if original_booking else None,
    }


class WebhookBookingSideEffectsService:
    @inject
    def __init__(self, webhook_service: Annotated["WebhookService", Provide["webhook_service"]]):
        self.webhook_service = webhook_service

    def _send(self, booking: Booking, trigger: WebhookTrigger, **payload_kwargs):
        self.webhook_service.send_event(
            user=booking.host,
            trigger=trigger,
            payload=dict(build_booking_payload(booking, **payload_kwargs)),
            event_type_id=booking.event_type_id,
            booking_uid=booking.uid,
        )

    def on_booking_created(self, result: BookingResult) -> None:
        for booking in result.bookings:
            self._send(
                booking,
                WebhookTrigger.BOOKING_CREATED
                if booking.status == BookingStatus.ACCEPTED
                else WebhookTrigger.BOOKING_REQUESTED,
            )

    def on_booking_rescheduled(self, booking: Booking, original_booking: Booking) -> None:
        self._send(
            booking,
            WebhookTrigger.BOOKING_RESCHEDULED,
            reason=original_booking.cancellation_reason or None,
            original_booking=original_booking,
        )

    def on_seat_added(self, booking: Booking, attendee: Attendee) -> None:
        self._send(booking, WebhookTrigger.BOOKING_CREATED)

    def on_booking_status_changed(self, change: BookingStatusChangeData) -> None:
        trigger = STATUS_CHANGE_TRIGGERS.get(change.booking.status)
        if trigger is None:
            return
        self._send(change.booking, trigger, reason=change.reason or None)

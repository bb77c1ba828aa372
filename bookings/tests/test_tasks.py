import datetime
from unittest.mock import MagicMock

import pytest
from model_bakery import baker

from bookings.constants import BookingStatus
from bookings.models import Booking
from bookings.services.notification_side_effects import BookingNotificationsSideEffectsService
from bookings.tasks import send_booking_reminder


START = datetime.datetime(2030, 1, 8, 10, tzinfo=datetime.UTC)


@pytest.fixture
def notifications_service():
    return MagicMock(spec=BookingNotificationsSideEffectsService)


@pytest.fixture
def booking(event_type, host):
    return baker.make(
        Booking,
        event_type=event_type,
        host=host,
        start_time=START,
        end_time=START + datetime.timedelta(minutes=30),
        status=BookingStatus.ACCEPTED,
    )


@pytest.mark.django_db
class TestSendBookingReminder:
    def test_sends_reminder(self, notifications_service, booking):
        send_booking_reminder(
            booking_id=booking.pk,
            start_time=START.isoformat(),
            notifications_service=notifications_service,
        )

        notifications_service.send_booking_reminder.assert_called_once_with(booking)

    def test_cancelled_booking(self, notifications_service, booking):
        booking.status = BookingStatus.CANCELLED
        booking.save()

        send_booking_reminder(
            booking_id=booking.pk,
            start_time=START.isoformat(),
            notifications_service=notifications_service,
        )

        notifications_service.send_booking_reminder.assert_not_called()

    def test_moved_booking(self, notifications_service, booking):
        send_booking_reminder(
            booking_id=booking.pk,
            start_time=(START - datetime.timedelta(hours=1)).isoformat(),
            notifications_service=notifications_service,
        )

        notifications_service.send_booking_reminder.assert_not_called()

    def test_missing_booking(self, notifications_service):
        send_booking_reminder(
            booking_id=999999,
            start_time=START.isoformat(),
            notifications_service=notifications_service,
        )

        notifications_service.send_booking_reminder.assert_not_called()

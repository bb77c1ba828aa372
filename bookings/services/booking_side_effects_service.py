import logging
from collections.abc import Callable, Iterable
from typing import Protocol, runtime_checkable

import sentry_sdk

from bookings.models import Attendee, Booking
from bookings.services.dataclasses import BookingResult, BookingStatusChangeData


logger = logging.getLogger(__name__)


@runtime_checkable
class OnBookingCreatedHandler(Protocol):
    def on_booking_created(self, result: BookingResult) -> None:
        ...


@runtime_checkable
class OnBookingRescheduledHandler(Protocol):
    def on_booking_rescheduled(self, booking: Booking, original_booking: Booking) -> None:
        ...


@runtime_checkable
class OnSeatAddedHandler(Protocol):
    def on_seat_added(self, booking: Booking, attendee: Attendee) -> None:
        ...


@runtime_checkable
class OnBookingStatusChangedHandler(Protocol):
    def on_booking_status_changed(self, change: BookingStatusChangeData) -> None:
        ...


class BookingSideEffectsService:
    """
    Runs the handlers interested in a booking event. A failing handler is logged and reported,
    the remaining handlers still run and the booking itself is never affected.
    """

    def __init__(
        self,
        side_effects_pipeline: Iterable[
            OnBookingCreatedHandler
            | OnBookingRescheduledHandler
            | OnSeatAddedHandler
            | OnBookingStatusChangedHandler
        ],
    ):
        self.side_effects_pipeline = list(side_effects_pipeline)

    def _run_handler(self, handler: object, call: Callable[[], None], event_name: str):
        try:
            call()
        except Exception as e:  # noqa: BLE001
            logger.exception(
                "Booking side effect %s failed on %s", handler.__class__.__name__, event_name
            )
            sentry_sdk.capture_exception(e)

    def on_booking_created(self, result: BookingResult) -> None:
        for handler in self.side_effects_pipeline:
            if isinstance(handler, OnBookingCreatedHandler):
                self._run_handler(
                    handler,
                    lambda handler=handler: handler.on_booking_created(result),
                    "on_booking_created",
                )

    def on_booking_rescheduled(self, booking: Booking, original_booking: Booking) -> None:
        for handler in self.side_effects_pipeline:
            if isinstance(handler, OnBookingRescheduledHandler):
                self._run_handler(
                    handler,
                    lambda handler=handler: handler.on_booking_rescheduled(
                        booking, original_booking
                    ),
                    "on_booking_rescheduled",
                )

    def on_seat_added(self, booking: Booking, attendee: Attendee) -> None:
        for handler in self.side_effects_pipeline:
            if isinstance(handler, OnSeatAddedHandler):
                self._run_handler(
                    handler,
                    lambda handler=handler: handler.on_seat_added(booking, attendee),
                    "on_seat_added",
                )

    def on_booking_status_changed(self, change: BookingStatusChangeData) -> None:
        for handler in self.side_effects_pipeline:
            if isinstance(handler, OnBookingStatusChangedHandler):
                self._run_handler(
                    handler,
                    lambda handler=handler: handler.on_booking_status_changed(change),
                    "on_booking_status_changed",
                )

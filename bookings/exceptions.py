from rest_framework import status

from bookings.constants import BookingRejectionCode


class BookingError(Exception):
    """Base exception for booking errors"""

    default_message = ""

    def __init__(self, message: str | None = None):
        if message is None:
            message = self.default_message
        self.message = message
        super().__init__(message)


class BookingRejectionError(BookingError):
    """Expected, user-facing refusal of a booking request"""

    code: str = BookingRejectionCode.VALIDATION_ERROR
    http_status: int = status.HTTP_400_BAD_REQUEST


class BookingValidationError(BookingRejectionError):
    code = BookingRejectionCode.VALIDATION_ERROR
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid booking request."


class BookingOutOfBoundsError(BookingRejectionError):
    code = BookingRejectionCode.OUT_OF_BOUNDS
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "The requested time is outside the bookable period."


class BookingNotFoundError(BookingRejectionError):
    code = BookingRejectionCode.NOT_FOUND
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Booking not found"


class BookingUnavailableError(BookingRejectionError):
    code = BookingRejectionCode.UNAVAILABLE
    http_status = status.HTTP_409_CONFLICT
    default_message = "No available users found."


class BookingConflictError(BookingRejectionError):
    code = BookingRejectionCode.CONFLICT
    http_status = status.HTTP_409_CONFLICT
    default_message = "The booking conflicts with an existing booking."


class BookingLimitReachedError(BookingUnavailableError):
    default_message = "Booking limit reached for this period."


class BookingSeatsFullError(BookingUnavailableError, BookingConflictError):
    code = BookingRejectionCode.CONFLICT
    default_message = "Booking seats are full"


class BookingStateTransitionError(BookingConflictError):
    def __init__(self, booking_uid: str, from_status: str, action: str):
        super().__init__(f"Booking {booking_uid} can't be {action} while {from_status}.")


class BookingDependencyError(BookingError):
    """The booking store couldn't be read, the request fails as an internal error"""

    default_message = "Could not read the booking store."

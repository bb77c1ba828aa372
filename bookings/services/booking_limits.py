import datetime
from zoneinfo import ZoneInfo

from bookings.constants import BookingLimitPeriod, BookingStatus
from bookings.exceptions import BookingLimitReachedError, BookingValidationError
from bookings.models import Booking, EventType
from users.models import User


def get_period_bounds(
    period: str, start_time: datetime.datetime, time_zone: str
) -> tuple[datetime.datetime, datetime.datetime]:
    """
    Start and end of the day, ISO week (starting Monday), month or year containing
    ``start_time`` in ``time_zone``.
    """
    tz = ZoneInfo(time_zone)
    local_date = start_time.astimezone(tz).date()

    if period == BookingLimitPeriod.PER_DAY:
        first_day = local_date
        last_day = local_date + datetime.timedelta(days=1)
    elif period == BookingLimitPeriod.PER_WEEK:
        first_day = local_date - datetime.timedelta(days=local_date.weekday())
        last_day = first_day + datetime.timedelta(days=7)
    elif period == BookingLimitPeriod.PER_MONTH:
        first_day = local_date.replace(day=1)
        last_day = (first_day + datetime.timedelta(days=32)).replace(day=1)
    elif period == BookingLimitPeriod.PER_YEAR:
        first_day = local_date.replace(month=1, day=1)
        last_day = first_day.replace(year=first_day.year + 1)
    else:
        raise BookingValidationError(f"Unknown booking limit period: {period}")

    return (
        datetime.datetime.combine(first_day, datetime.time.min, tzinfo=tz),
        datetime.datetime.combine(last_day, datetime.time.min, tzinfo=tz),
    )


def check_booking_limits(
    event_type: EventType,
    host: User,
    start_time: datetime.datetime,
    exclude_booking_uids: list[str] | None = None,
):
    """
    Rejects the request when the host already has as many accepted bookings of this event
    type as a configured limit allows in the period containing ``start_time``.
    Callers hold a lock on the host row so the count can't change before the booking is written.
    """
    for period, limit in (event_type.booking_limits or {}).items():
        if limit is None:
            continue
        period_start, period_end = get_period_bounds(period, start_time, event_type.time_zone)
        bookings_in_period = (
            Booking.objects.filter(
                event_type=event_type,
                host=host,
                status=BookingStatus.ACCEPTED,
                start_time__gte=period_start,
                start_time__lt=period_end,
            )
            .exclude(uid__in=exclude_booking_uids or [])
            .count()
        )
        if bookings_in_period >= int(limit):
            raise BookingLimitReachedError(
                f"Booking limit reached: {limit} {BookingLimitPeriod(period).label.lower()}."
            )

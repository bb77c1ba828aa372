import datetime
from zoneinfo import ZoneInfo

from bookings.constants import PeriodType
from bookings.exceptions import BookingOutOfBoundsError
from bookings.models import EventType


def add_business_days(day: datetime.date, business_days: int) -> datetime.date:
    """Moves ``business_days`` Monday to Friday days forward, weekends don't count."""
    current = day
    remaining = business_days
    while remaining > 0:
        current += datetime.timedelta(days=1)
        if current.weekday() < 5:
            remaining -= 1
    return current


def get_rolling_period_end_date(event_type: EventType, now: datetime.datetime) -> datetime.date:
    today = now.astimezone(ZoneInfo(event_type.time_zone)).date()
    period_days = event_type.period_days or 0
    if event_type.period_count_calendar_days:
        return today + datetime.timedelta(days=period_days)
    return add_business_days(today, period_days)


def is_out_of_bounds(
    event_type: EventType, start_time: datetime.datetime, now: datetime.datetime
) -> bool:
    """
    Whether ``start_time`` falls outside the event type's booking period. Dates are compared in
    the event type's time zone.
    """
    start_date = start_time.astimezone(ZoneInfo(event_type.time_zone)).date()

    if event_type.period_type == PeriodType.ROLLING:
        return start_date > get_rolling_period_end_date(event_type, now)

    if event_type.period_type == PeriodType.RANGE:
        if event_type.period_start_date and start_date < event_type.period_start_date:
            return True
        if event_type.period_end_date and start_date > event_type.period_end_date:
            return True
        return False

    return False


def check_booking_period(
    event_type: EventType, start_time: datetime.datetime, now: datetime.datetime
):
    if start_time < now:
        raise BookingOutOfBoundsError("Attempting to book a meeting in the past.")

    earliest_start = now + datetime.timedelta(minutes=event_type.minimum_booking_notice)
    if start_time < earliest_start or is_out_of_bounds(event_type, start_time, now):
        raise BookingOutOfBoundsError(f"EventType '{event_type.title}' cannot be booked at this time.")

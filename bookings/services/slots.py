"""
Slot math. Everything here is a pure function of its arguments, ``now`` included, so callers
decide the clock.

Two generators are provided:

- ``get_slots`` walks each working-hours window in steps of the slot frequency and ignores busy
  times, which callers filter out afterwards.
- ``get_time_slots_compact`` walks a shift in steps of the event length and jumps to the end of
  any busy interval blocking a candidate, so no minutes are lost between meetings. It assumes
  the busy times belong to a single host.
"""

import datetime
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from zoneinfo import ZoneInfo

from calendar_integration.services.dataclasses import BusyInterval


@dataclass(frozen=True)
class TimeFrame:
    """Window in minutes of the day, e.g. 540 to 1020 is 09:00 to 17:00."""

    start_minute: int
    end_minute: int


def minimum_of_one(value: int) -> int:
    return value if value >= 1 else 1


def day_of_week(day: datetime.date) -> int:
    """0 is Sunday, 6 is Saturday."""
    return (day.weekday() + 1) % 7


def slots_overlap(
    start_1: datetime.datetime,
    end_1: datetime.datetime,
    start_2: datetime.datetime,
    end_2: datetime.datetime,
) -> bool:
    """Half-open overlap. Touching endpoints don't overlap."""
    return start_1 < end_2 and end_1 > start_2


def split_available_time(
    start_minute: int, end_minute: int, frequency: int, event_length: int
) -> list[TimeFrame]:
    frequency = minimum_of_one(frequency)
    event_length = minimum_of_one(event_length)

    result = []
    current = start_minute
    while current < end_minute:
        # one minute of tolerance so a window ending at 11:59 still fits a slot ending at 12:00
        if current + event_length <= end_minute + 1:
            result.append(TimeFrame(start_minute=current, end_minute=current + frequency))
        current += frequency
    return result


def get_slots(
    invitee_date: datetime.date,
    time_zone: str,
    frequency: int,
    minimum_booking_notice: int,
    working_hours: Sequence[TimeFrame],
    event_length: int,
    now: datetime.datetime,
) -> list[datetime.datetime]:
    """
    Candidate starts on ``invitee_date`` for the given working-hours windows, expressed in
    ``time_zone``. Starts earlier than ``now + minimum_booking_notice`` are dropped.
    """
    tz = ZoneInfo(time_zone)
    earliest_start = now + datetime.timedelta(minutes=minimum_booking_notice)
    start_of_day = datetime.datetime.combine(invitee_date, datetime.time.min, tzinfo=tz)

    slots = set()
    for window in working_hours:
        for frame in split_available_time(
            window.start_minute, window.end_minute, frequency, event_length
        ):
            slot = start_of_day + datetime.timedelta(minutes=frame.start_minute)
            if slot >= earliest_start:
                slots.add(slot)
    return sorted(slots)


def get_time_slots_compact(
    slot_day: datetime.date,
    shift_start: datetime.datetime,
    shift_end: datetime.datetime,
    days: Iterable[int],
    min_start_time: datetime.datetime,
    event_length: int,
    busy_times: Sequence[BusyInterval],
) -> list[datetime.datetime]:
    """
    Candidates for one host's shift, packed as tightly as possible around busy times.
    ``days`` lists the active days of the week, 0 being Sunday.
    """
    if slot_day < min_start_time.astimezone(shift_start.tzinfo).date():
        return []

    if day_of_week(slot_day) not in set(days):
        return []

    length = datetime.timedelta(minutes=minimum_of_one(event_length))
    slots = []
    slot_start = shift_start
    slot_end = slot_start + length

    while slot_end <= shift_end:
        if slot_start >= min_start_time:
            blocking = next(
                (
                    busy
                    for busy in busy_times
                    if slots_overlap(slot_start, slot_end, busy.start, busy.end)
                ),
                None,
            )
            if blocking is not None:
                slot_start = blocking.end
                slot_end = slot_start + length
                continue
            slots.append(slot_start)
        slot_start = slot_end
        slot_end = slot_start + length
    return slots


def is_available(
    busy_times: Iterable[BusyInterval],
    start_time: datetime.datetime,
    end_time: datetime.datetime,
) -> bool:
    return not any(slots_overlap(start_time, end_time, busy.start, busy.end) for busy in busy_times)

import datetime

import pytest

from bookings.services.slots import (
    TimeFrame,
    day_of_week,
    get_slots,
    get_time_slots_compact,
    is_available,
    slots_overlap,
    split_available_time,
)
from calendar_integration.services.dataclasses import BusyInterval


UTC = datetime.UTC


def dt(hour, minute=0, day=8):
    return datetime.datetime(2030, 1, day, hour, minute, tzinfo=UTC)


def busy(start, end, source="credential-1"):
    return BusyInterval(start=start, end=end, source=source)


def test_day_of_week_starts_on_sunday():
    assert day_of_week(datetime.date(2030, 1, 6)) == 0  # Sunday
    assert day_of_week(datetime.date(2030, 1, 7)) == 1  # Monday
    assert day_of_week(datetime.date(2030, 1, 12)) == 6  # Saturday


@pytest.mark.parametrize(
    ("start_2", "end_2", "expected"),
    [
        (dt(10), dt(11), False),  # touches the end
        (dt(8), dt(9), False),  # touches the start
        (dt(9, 30), dt(9, 45), True),  # inside
        (dt(8), dt(12), True),  # covers
        (dt(9, 59), dt(10, 30), True),
    ],
)
def test_slots_overlap_is_half_open(start_2, end_2, expected):
    assert slots_overlap(dt(9), dt(10), start_2, end_2) is expected


def test_split_available_time():
    frames = split_available_time(540, 660, frequency=30, event_length=30)

    assert [frame.start_minute for frame in frames] == [540, 570, 600, 630]


def test_split_available_time_allows_one_minute_tolerance():
    frames = split_available_time(540, 719, frequency=60, event_length=60)

    assert [frame.start_minute for frame in frames] == [540, 600, 660]


def test_split_available_time_with_zero_frequency_uses_one_minute():
    frames = split_available_time(0, 3, frequency=0, event_length=0)

    assert [frame.start_minute for frame in frames] == [0, 1, 2]


def test_get_slots_frequency_different_from_length():
    slots = get_slots(
        invitee_date=datetime.date(2030, 1, 8),
        time_zone="UTC",
        frequency=15,
        minimum_booking_notice=0,
        working_hours=[TimeFrame(start_minute=540, end_minute=600)],
        event_length=30,
        now=dt(0),
    )

    assert slots == [dt(9), dt(9, 15), dt(9, 30)]


def test_get_slots_drops_starts_before_minimum_notice():
    slots = get_slots(
        invitee_date=datetime.date(2030, 1, 8),
        time_zone="UTC",
        frequency=30,
        minimum_booking_notice=60,
        working_hours=[TimeFrame(start_minute=540, end_minute=660)],
        event_length=30,
        now=dt(9, 10),
    )

    assert slots == [dt(10, 30)]


def test_get_slots_merges_overlapping_windows():
    slots = get_slots(
        invitee_date=datetime.date(2030, 1, 8),
        time_zone="UTC",
        frequency=30,
        minimum_booking_notice=0,
        working_hours=[
            TimeFrame(start_minute=540, end_minute=600),
            TimeFrame(start_minute=570, end_minute=630),
        ],
        event_length=30,
        now=dt(0),
    )

    assert slots == [dt(9), dt(9, 30), dt(10)]


def test_get_slots_in_event_time_zone():
    slots = get_slots(
        invitee_date=datetime.date(2030, 1, 8),
        time_zone="America/Sao_Paulo",
        frequency=60,
        minimum_booking_notice=0,
        working_hours=[TimeFrame(start_minute=540, end_minute=600)],
        event_length=60,
        now=dt(0),
    )

    assert slots == [dt(12)]


def test_get_time_slots_compact_jumps_past_busy_times():
    slots = get_time_slots_compact(
        slot_day=datetime.date(2030, 1, 8),
        shift_start=dt(9),
        shift_end=dt(12),
        days=[2],
        min_start_time=dt(0),
        event_length=30,
        busy_times=[busy(dt(9, 50), dt(10, 20))],
    )

    assert slots == [dt(9), dt(10, 20), dt(10, 50), dt(11, 20)]


def test_get_time_slots_compact_fills_shift_without_busy_times():
    slots = get_time_slots_compact(
        slot_day=datetime.date(2030, 1, 8),
        shift_start=dt(9),
        shift_end=dt(11),
        days=[2],
        min_start_time=dt(0),
        event_length=30,
        busy_times=[],
    )

    assert slots == [dt(9), dt(9, 30), dt(10), dt(10, 30)]


def test_get_time_slots_compact_inactive_day():
    slots = get_time_slots_compact(
        slot_day=datetime.date(2030, 1, 8),
        shift_start=dt(9),
        shift_end=dt(12),
        days=[1, 3],
        min_start_time=dt(0),
        event_length=30,
        busy_times=[],
    )

    assert slots == []


def test_get_time_slots_compact_day_before_minimum_start():
    slots = get_time_slots_compact(
        slot_day=datetime.date(2030, 1, 8),
        shift_start=dt(9),
        shift_end=dt(12),
        days=[2],
        min_start_time=dt(9, day=9),
        event_length=30,
        busy_times=[],
    )

    assert slots == []


def test_get_time_slots_compact_skips_starts_before_minimum():
    slots = get_time_slots_compact(
        slot_day=datetime.date(2030, 1, 8),
        shift_start=dt(9),
        shift_end=dt(11),
        days=[2],
        min_start_time=dt(9, 45),
        event_length=30,
        busy_times=[],
    )

    assert slots == [dt(10), dt(10, 30)]


def test_is_available():
    busy_times = [busy(dt(10), dt(11))]

    assert is_available(busy_times, dt(9), dt(10)) is True
    assert is_available(busy_times, dt(11), dt(12)) is True
    assert is_available(busy_times, dt(10, 30), dt(11, 30)) is False
    assert is_available([], dt(10), dt(11)) is True

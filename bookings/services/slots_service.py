import datetime
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Annotated
from zoneinfo import ZoneInfo

from django.utils import timezone

from dependency_injector.wiring import Provide, inject

from bookings.constants import SchedulingType
from bookings.models import EventType
from bookings.services.booking_period import is_out_of_bounds
from bookings.services.slots import (
    TimeFrame,
    day_of_week,
    get_slots,
    get_time_slots_compact,
    is_available,
)
from calendar_integration.services.busy_times_service import get_busy_times_between
from calendar_integration.services.dataclasses import BusyInterval, BusyTimesQueryUser
from common.exceptions import ServiceNotInjectedError
from users.models import User


if TYPE_CHECKING:
    from calendar_integration.services.busy_times_service import BusyTimesService


logger = logging.getLogger(__name__)


def _minutes_of_day(value: datetime.time) -> int:
    return value.hour * 60 + value.minute


class SlotsService:
    """
    Bookable starts of an event type: working hours (or date overrides) turned into candidates
    and filtered by the hosts' busy times and the booking period.
    """

    @inject
    def __init__(
        self,
        busy_times_service: Annotated["BusyTimesService | None", Provide["busy_times_service"]] = None,
    ):
        self.busy_times_service = busy_times_service

    def get_windows_by_date(
        self, event_type: EventType, first_day: datetime.date, last_day: datetime.date
    ) -> dict[datetime.date, list[TimeFrame]]:
        """
        Availability windows of each date, in minutes of the event type's day. Date overrides
        replace the weekly working hours of their date.
        """
        overrides: dict[datetime.date, list[TimeFrame]] = defaultdict(list)
        for override in event_type.date_overrides.filter(date__gte=first_day, date__lte=last_day):
            overrides[override.date].append(
                TimeFrame(
                    start_minute=_minutes_of_day(override.start_time),
                    end_minute=_minutes_of_day(override.end_time),
                )
            )
        working_hours = list(event_type.working_hours.all())

        windows_by_date = {}
        day = first_day
        while day <= last_day:
            if day in overrides:
                windows_by_date[day] = overrides[day]
            else:
                windows_by_date[day] = [
                    TimeFrame(
                        start_minute=_minutes_of_day(hours.start_time),
                        end_minute=_minutes_of_day(hours.end_time),
                    )
                    for hours in working_hours
                    if day_of_week(day) in hours.days
                ]
            day += datetime.timedelta(days=1)
        return windows_by_date

    def get_candidates(
        self,
        event_type: EventType,
        range_start: datetime.datetime,
        range_end: datetime.datetime,
        now: datetime.datetime,
    ) -> list[datetime.datetime]:
        """Grid candidates starting in ``[range_start, range_end)``, before any busy filtering."""
        event_tz = ZoneInfo(event_type.time_zone)
        # one extra day each side, the invitee's days don't line up with the event type's
        first_day = range_start.astimezone(event_tz).date() - datetime.timedelta(days=1)
        last_day = range_end.astimezone(event_tz).date() + datetime.timedelta(days=1)

        candidates = []
        for day, windows in self.get_windows_by_date(event_type, first_day, last_day).items():
            if not windows:
                continue
            candidates.extend(
                slot
                for slot in get_slots(
                    invitee_date=day,
                    time_zone=event_type.time_zone,
                    frequency=event_type.slot_frequency,
                    minimum_booking_notice=event_type.minimum_booking_notice,
                    working_hours=windows,
                    event_length=event_type.length_minutes,
                    now=now,
                )
                if range_start <= slot < range_end
            )
        return sorted(candidates)

    def get_compact_slots(
        self,
        event_type: EventType,
        host: User,
        range_start: datetime.datetime,
        range_end: datetime.datetime,
        now: datetime.datetime,
    ) -> list[datetime.datetime]:
        """
        Starts for a single host, packed right after each busy time so no minutes are lost
        between meetings. Returned in the event type's time zone.
        """
        if self.busy_times_service is None:
            raise ServiceNotInjectedError("busy_times_service")

        event_tz = ZoneInfo(event_type.time_zone)
        first_day = range_start.astimezone(event_tz).date() - datetime.timedelta(days=1)
        last_day = range_end.astimezone(event_tz).date() + datetime.timedelta(days=1)
        query_start = datetime.datetime.combine(first_day, datetime.time.min, tzinfo=event_tz)
        query_end = datetime.datetime.combine(
            last_day + datetime.timedelta(days=1), datetime.time.min, tzinfo=event_tz
        )

        busy_times = self.busy_times_service.get_busy_times_by_user_and_day(
            [BusyTimesQueryUser.from_user(host)], query_start, query_end
        )
        before = datetime.timedelta(minutes=event_type.before_event_buffer)
        after = datetime.timedelta(minutes=event_type.after_event_buffer)
        # widened by the buffers, a slot then only needs its own bounds checked
        host_busy_times = sorted(
            {
                BusyInterval(start=busy.start - after, end=busy.end + before, source=busy.source)
                for busy in get_busy_times_between(
                    busy_times.get(host.pk, {}), query_start, query_end
                )
            },
            key=lambda busy: (busy.start, busy.end),
        )

        min_start_time = now + datetime.timedelta(minutes=event_type.minimum_booking_notice)
        slots = set()
        for day, windows in self.get_windows_by_date(event_type, first_day, last_day).items():
            start_of_day = datetime.datetime.combine(day, datetime.time.min, tzinfo=event_tz)
            for window in windows:
                slots.update(
                    get_time_slots_compact(
                        slot_day=day,
                        shift_start=start_of_day + datetime.timedelta(minutes=window.start_minute),
                        shift_end=start_of_day + datetime.timedelta(minutes=window.end_minute),
                        days=[day_of_week(day)],
                        min_start_time=min_start_time,
                        event_length=event_type.length_minutes,
                        busy_times=host_busy_times,
                    )
                )
        return sorted(
            slot
            for slot in slots
            if range_start <= slot < range_end and not is_out_of_bounds(event_type, slot, now)
        )

    def get_available_slots(
        self,
        event_type: EventType,
        date_from: datetime.date,
        date_to: datetime.date,
        time_zone: str = "UTC",
        now: datetime.datetime | None = None,
        compact: bool = False,
    ) -> list[datetime.datetime]:
        """
        Free starts between ``date_from`` and ``date_to`` (both included, as dates in
        ``time_zone``), returned in ``time_zone``.

        ``compact`` packs the starts around busy times instead of the fixed grid. It only
        applies to event types with a single host, others keep the grid.
        """
        if self.busy_times_service is None:
            raise ServiceNotInjectedError("busy_times_service")

        now = now or timezone.now()
        invitee_tz = ZoneInfo(time_zone)
        range_start = datetime.datetime.combine(date_from, datetime.time.min, tzinfo=invitee_tz)
        range_end = datetime.datetime.combine(
            date_to + datetime.timedelta(days=1), datetime.time.min, tzinfo=invitee_tz
        )

        hosts = event_type.get_host_users()
        if compact and len(hosts) == 1:
            compact_slots = self.get_compact_slots(
                event_type, hosts[0], range_start, range_end, now
            )
            return [slot.astimezone(invitee_tz) for slot in compact_slots]

        candidates = [
            slot
            for slot in self.get_candidates(event_type, range_start, range_end, now)
            if not is_out_of_bounds(event_type, slot, now)
        ]
        if not candidates:
            return []

        before = datetime.timedelta(minutes=event_type.before_event_buffer)
        after = datetime.timedelta(minutes=event_type.after_event_buffer)
        length = event_type.length
        busy_times = self.busy_times_service.get_busy_times_by_user_and_day(
            [BusyTimesQueryUser.from_user(host) for host in hosts],
            candidates[0] - before,
            candidates[-1] + length + after,
        )

        def is_host_free(host_id: int, start: datetime.datetime, end: datetime.datetime) -> bool:
            host_busy_times = get_busy_times_between(busy_times.get(host_id, {}), start, end)
            return is_available(host_busy_times, start, end)

        needs_every_host = event_type.scheduling_type != SchedulingType.ROUND_ROBIN
        slots = []
        for slot in candidates:
            start, end = slot - before, slot + length + after
            free_hosts = [host for host in hosts if is_host_free(host.pk, start, end)]
            if (needs_every_host and len(free_hosts) == len(hosts)) or (
                not needs_every_host and free_hosts
            ):
                slots.append(slot.astimezone(invitee_tz))

        logger.debug(
            "Computed %d slots for event type %s between %s and %s",
            len(slots),
            event_type.slug,
            date_from,
            date_to,
        )
        return slots

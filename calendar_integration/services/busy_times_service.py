import asyncio
import datetime
import hashlib
import json
import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import Annotated

from django.db import DatabaseError
from django.db.models import Max, Q

import sentry_sdk
from asgiref.sync import async_to_sync, sync_to_async
from dependency_injector.wiring import Provide, inject

from bookings.constants import BookingStatus
from bookings.models import Booking, EventType
from calendar_integration.constants import EXTERNAL_BUSY_SOURCE_PREFIX
from calendar_integration.exceptions import BusyTimesDependencyError, InvalidCredentialsError
from calendar_integration.models import CalendarCredential
from calendar_integration.services.calendar_adapter_factory import (
    get_calendar_adapter_for_credential,
)
from calendar_integration.services.dataclasses import (
    BusyInterval,
    BusyTimesFetchResult,
    BusyTimesQueryUser,
    SelectedCalendarData,
)
from common.types import CacheClient


logger = logging.getLogger(__name__)

BusyTimesByDay = dict[str, list[BusyInterval]]


def get_day_keys(interval: BusyInterval) -> list[str]:
    """
    UTC days touched by the interval, both boundary days included.
    """
    first_day = interval.start.astimezone(datetime.UTC).date()
    last_day = interval.end.astimezone(datetime.UTC).date()
    return [
        (first_day + datetime.timedelta(days=offset)).isoformat()
        for offset in range((last_day - first_day).days + 1)
    ]


def get_busy_times_between(
    busy_times_by_day: BusyTimesByDay, start: datetime.datetime, end: datetime.datetime
) -> list[BusyInterval]:
    """
    Intervals indexed under the UTC days touched by ``[start, end)``. They aren't filtered by
    overlap, callers test that themselves.
    """
    first_day = start.astimezone(datetime.UTC).date()
    last_day = end.astimezone(datetime.UTC).date()
    intervals = []
    for offset in range((last_day - first_day).days + 1):
        day_key = (first_day + datetime.timedelta(days=offset)).isoformat()
        intervals.extend(busy_times_by_day.get(day_key, []))
    return intervals


def _sort_key(interval: BusyInterval):
    return (interval.start, interval.end, interval.source)


class BusyTimesService:
    """
    Aggregates the busy intervals of a set of hosts from the internal booking store and from
    their connected external calendars.

    The booking store is a hard dependency, any failure reading it fails the whole call.
    External calendars are best effort: a failing credential contributes no intervals and
    never affects its siblings. Adapter results are cached per credential and query range.
    """

    @inject
    def __init__(
        self,
        cache: Annotated[CacheClient, Provide["busy_times_cache"]],
        cache_ttl_seconds: int = 30,
        max_concurrency: int = 5,
        cache_key_prefix: str = "busy_times",
    ):
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self.max_concurrency = max(max_concurrency, 1)
        self.cache_key_prefix = cache_key_prefix

    def get_busy_times_by_user_and_day(
        self,
        users: Iterable[BusyTimesQueryUser],
        date_from: datetime.datetime,
        date_to: datetime.datetime,
        exclude_booking_uids: Iterable[str] = (),
    ) -> dict[int, BusyTimesByDay]:
        """
        Returns ``{user_id: {"YYYY-MM-DD": [BusyInterval, ...]}}`` with UTC day keys and
        intervals sorted by start. An interval spanning several days is listed under each of
        them. Overlapping intervals from different sources are kept as-is.
        """
        users = list(users)
        if not users:
            return {}

        internal_busy_times = self._get_internal_busy_times(
            users, date_from, date_to, exclude_booking_uids=set(exclude_booking_uids)
        )
        fetch_results = self._fetch_external_busy_times(users, date_from, date_to)

        busy_times: dict[int, BusyTimesByDay] = {}
        for user in users:
            intervals = list(internal_busy_times.get(user.user_id, []))
            for result in fetch_results.get(user.user_id, []):
                intervals.extend(result.intervals)

            by_day: BusyTimesByDay = defaultdict(list)
            for interval in intervals:
                utc_interval = interval.to_utc()
                for day_key in get_day_keys(utc_interval):
                    by_day[day_key].append(utc_interval)
            busy_times[user.user_id] = {
                day_key: sorted(day_intervals, key=_sort_key)
                for day_key, day_intervals in sorted(by_day.items())
            }
        return busy_times

    def get_busy_times_for_user(
        self,
        user: BusyTimesQueryUser,
        date_from: datetime.datetime,
        date_to: datetime.datetime,
        exclude_booking_uids: Iterable[str] = (),
    ) -> list[BusyInterval]:
        """
        All busy intervals of one user, flattened across days and without the repetitions
        introduced by the per-day split.
        """
        by_day = self.get_busy_times_by_user_and_day(
            [user], date_from, date_to, exclude_booking_uids=exclude_booking_uids
        ).get(user.user_id, {})
        seen = set()
        intervals = []
        for day_intervals in by_day.values():
            for interval in day_intervals:
                key = (interval.source, interval.start, interval.end)
                if key in seen:
                    continue
                seen.add(key)
                intervals.append(interval)
        return sorted(intervals, key=_sort_key)

    def _get_internal_busy_times(
        self,
        users: list[BusyTimesQueryUser],
        date_from: datetime.datetime,
        date_to: datetime.datetime,
        exclude_booking_uids: set[str],
    ) -> dict[int, list[BusyInterval]]:
        user_ids = {user.user_id for user in users}
        user_ids_by_email = defaultdict(set)
        for user in users:
            if user.email:
                user_ids_by_email[user.email.lower()].add(user.user_id)

        try:
            buffers = EventType.objects.aggregate(
                max_before=Max("before_event_buffer"), max_after=Max("after_event_buffer")
            )
            # bookings just outside the range still count when their buffers reach into it
            query_from = date_from - datetime.timedelta(minutes=buffers["max_after"] or 0)
            query_to = date_to + datetime.timedelta(minutes=buffers["max_before"] or 0)

            host_filter = Q(host_id__in=user_ids)
            if user_ids_by_email:
                host_filter |= Q(attendees__email__in=list(user_ids_by_email.keys()))
            bookings = list(
                Booking.objects.filter(
                    host_filter,
                    status=BookingStatus.ACCEPTED,
                    start_time__lt=query_to,
                    end_time__gt=query_from,
                )
                .exclude(uid__in=exclude_booking_uids)
                .select_related("event_type")
                .prefetch_related("attendees")
                .distinct()
            )
        except DatabaseError as e:
            logger.exception("Failed to read bookings while aggregating busy times")
            raise BusyTimesDependencyError() from e

        busy_times: dict[int, list[BusyInterval]] = defaultdict(list)
        for booking in bookings:
            interval = booking.to_busy_interval()
            if not interval.overlaps(date_from, date_to):
                continue
            owners = set()
            if booking.host_id in user_ids:
                owners.add(booking.host_id)
            for attendee in booking.attendees.all():
                owners |= user_ids_by_email.get(attendee.email.lower(), set())
            for user_id in owners:
                busy_times[user_id].append(interval)
        return busy_times

    def _fetch_external_busy_times(
        self,
        users: list[BusyTimesQueryUser],
        date_from: datetime.datetime,
        date_to: datetime.datetime,
    ) -> dict[int, list[BusyTimesFetchResult]]:
        jobs = [
            (user, credential)
            for user in users
            for credential in user.credentials
            if credential.is_calendar_integration
        ]
        if not jobs:
            return {}

        results = async_to_sync(self._gather_credential_busy_times)(jobs, date_from, date_to)

        results_by_user: dict[int, list[BusyTimesFetchResult]] = defaultdict(list)
        rejected_credential_ids = set()
        for (user, credential), result in zip(jobs, results, strict=True):
            results_by_user[user.user_id].append(result)
            if result.credential_rejected:
                rejected_credential_ids.add(credential.pk)

        if rejected_credential_ids:
            # not read again until the user reconnects the calendar
            CalendarCredential.objects.filter(pk__in=rejected_credential_ids).update(invalid=True)
        return results_by_user

    async def _gather_credential_busy_times(
        self,
        jobs: list[tuple[BusyTimesQueryUser, CalendarCredential]],
        date_from: datetime.datetime,
        date_to: datetime.datetime,
    ) -> list[BusyTimesFetchResult]:
        semaphore = asyncio.Semaphore(self.max_concurrency)
        fetch = sync_to_async(self.get_credential_busy_times, thread_sensitive=False)

        async def fetch_with_semaphore(user: BusyTimesQueryUser, credential: CalendarCredential):
            async with semaphore:
                return await fetch(credential, user.selected_calendars, date_from, date_to)

        return await asyncio.gather(
            *(fetch_with_semaphore(user, credential) for user, credential in jobs)
        )

    def build_cache_key(
        self,
        credential: CalendarCredential,
        selected_calendars: Iterable[SelectedCalendarData],
        date_from: datetime.datetime,
        date_to: datetime.datetime,
    ) -> str:
        payload = json.dumps(
            {
                "id": credential.pk,
                "selected_calendar_ids": sorted(c.external_id for c in selected_calendars),
                "date_from": date_from.astimezone(datetime.UTC).isoformat(),
                "date_to": date_to.astimezone(datetime.UTC).isoformat(),
            },
            sort_keys=True,
        )
        digest = hashlib.md5(payload.encode(), usedforsecurity=False).hexdigest()
        return f"{self.cache_key_prefix}:{digest}"

    def _read_cache(self, cache_key: str) -> list[BusyInterval] | None:
        try:
            cached = self.cache.get(cache_key)
            if cached is None:
                return None
            return [BusyInterval.from_dict(item) for item in json.loads(cached)]
        except Exception as e:  # noqa: BLE001
            logger.warning("Busy times cache read failed for %s: %s", cache_key, e)
            sentry_sdk.capture_exception(e)
            return None

    def _write_cache(self, cache_key: str, intervals: list[BusyInterval]):
        try:
            self.cache.set(
                cache_key,
                json.dumps([interval.to_dict() for interval in intervals]),
                ex=self.cache_ttl_seconds,
            )
        except Exception as e:  # noqa: BLE001
            logger.warning("Busy times cache write failed for %s: %s", cache_key, e)
            sentry_sdk.capture_exception(e)

    def get_credential_busy_times(
        self,
        credential: CalendarCredential,
        selected_calendars: Iterable[SelectedCalendarData],
        date_from: datetime.datetime,
        date_to: datetime.datetime,
    ) -> BusyTimesFetchResult:
        """
        Busy intervals of one external credential, served from the cache while fresh.
        Adapter failures are returned as a failed result with an empty interval list.
        """
        selected_calendars = list(selected_calendars)
        source = f"{EXTERNAL_BUSY_SOURCE_PREFIX}-{credential.pk}"
        cache_key = self.build_cache_key(credential, selected_calendars, date_from, date_to)

        cached = self._read_cache(cache_key)
        if cached is not None:
            return BusyTimesFetchResult(source=source, intervals=cached, from_cache=True)

        try:
            adapter = get_calendar_adapter_for_credential(credential)
            adapter_intervals = adapter.get_availability(date_from, date_to, selected_calendars)
        except InvalidCredentialsError as e:
            logger.warning(
                "Credential %s (%s) was rejected by the provider: %s",
                credential.pk,
                credential.provider,
                e,
            )
            return BusyTimesFetchResult(source=source, error=str(e), credential_rejected=True)
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Failed to fetch busy times for credential %s (%s): %s",
                credential.pk,
                credential.provider,
                e,
            )
            sentry_sdk.capture_exception(e)
            return BusyTimesFetchResult(source=source, error=str(e) or e.__class__.__name__)

        intervals = [
            BusyInterval(
                start=interval.start,
                end=interval.end,
                source=source,
                title=interval.title,
            ).to_utc()
            for interval in adapter_intervals
        ]
        self._write_cache(cache_key, intervals)
        return BusyTimesFetchResult(source=source, intervals=intervals)

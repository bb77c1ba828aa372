import datetime
from typing import TYPE_CHECKING

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q

from bookings.constants import BookingStatus, PeriodType, SchedulingType
from calendar_integration.constants import INTERNAL_BUSY_SOURCE_TEMPLATE, CalendarProvider
from calendar_integration.models import CalendarCredential
from calendar_integration.services.dataclasses import BusyInterval
from common.models import BaseModel, TimeRangeModel
from payments.models import Payment
from users.models import User


if TYPE_CHECKING:
    from django_stubs_ext.db.models.manager import RelatedManager


class EventType(BaseModel):
    """
    A bookable kind of meeting: its length, buffers, hosts, availability and admission rules.
    """

    slug = models.SlugField(max_length=255, unique=True)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name="owned_event_types")
    length_minutes = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    before_event_buffer = models.PositiveIntegerField(default=0)
    after_event_buffer = models.PositiveIntegerField(default=0)
    minimum_booking_notice = models.PositiveIntegerField(
        default=0, help_text="Minutes between now and the earliest bookable start."
    )
    slot_interval = models.PositiveIntegerField(
        null=True, blank=True, help_text="Minutes between slot starts. Defaults to the length."
    )
    scheduling_type = models.CharField(
        max_length=50, choices=SchedulingType, null=True, blank=True
    )
    seats_per_time_slot = models.PositiveIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1)]
    )
    booking_limits = models.JSONField(default=dict, blank=True)
    requires_confirmation = models.BooleanField(default=False)
    requires_confirmation_threshold = models.JSONField(null=True, blank=True)
    price = models.PositiveIntegerField(default=0, help_text="Minor currency units.")
    currency = models.CharField(max_length=10, default="usd")
    period_type = models.CharField(
        max_length=50, choices=PeriodType, default=PeriodType.UNLIMITED
    )
    period_days = models.PositiveIntegerField(null=True, blank=True)
    period_count_calendar_days = models.BooleanField(default=True)
    period_start_date = models.DateField(null=True, blank=True)
    period_end_date = models.DateField(null=True, blank=True)
    recurring_event = models.JSONField(null=True, blank=True)
    custom_inputs = models.JSONField(default=list, blank=True)
    time_zone = models.CharField(max_length=64, default="UTC")
    location = models.CharField(max_length=255, blank=True)
    request_conference = models.BooleanField(
        default=False, help_text="Ask the calendar provider for a video conference link."
    )

    hosts: "RelatedManager[EventTypeHost]"
    working_hours: "RelatedManager[WorkingHours]"
    date_overrides: "RelatedManager[DateOverride]"

    def __str__(self):
        return f"EventType(id={self.pk}, slug={self.slug})"

    @property
    def length(self) -> datetime.timedelta:
        return datetime.timedelta(minutes=self.length_minutes)

    @property
    def slot_frequency(self) -> int:
        return self.slot_interval or self.length_minutes

    @property
    def has_seats(self) -> bool:
        return bool(self.seats_per_time_slot)

    @property
    def is_paid(self) -> bool:
        return self.price > 0

    def get_host_users(self) -> list[User]:
        """
        Candidate hosts in priority order. An event type without configured hosts is hosted by
        its owner.
        """
        hosts = [host.user for host in self.hosts.select_related("user").all()]
        return hosts or [self.owner]


class EventTypeHost(BaseModel):
    event_type = models.ForeignKey(EventType, on_delete=models.CASCADE, related_name="hosts")
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="event_type_hosts")
    priority = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("priority", "id")
        constraints = [  # noqa: RUF012
            models.UniqueConstraint(
                fields=["event_type", "user"], name="unique_host_per_event_type"
            ),
        ]

    def __str__(self):
        return f"EventTypeHost(event_type={self.event_type_id}, user={self.user_id}, priority={self.priority})"


class WorkingHours(BaseModel):
    """
    Weekly availability window, in the event type's time zone. ``days`` uses 0 for Sunday.
    """

    event_type = models.ForeignKey(
        EventType, on_delete=models.CASCADE, related_name="working_hours"
    )
    days = models.JSONField(default=list)
    start_time = models.TimeField()
    end_time = models.TimeField()

    class Meta:
        ordering = ("start_time", "id")
        constraints = [  # noqa: RUF012
            models.CheckConstraint(
                condition=Q(end_time__gt=F("start_time")),
                name="working_hours_end_after_start",
            ),
        ]

    def __str__(self):
        return f"WorkingHours(days={self.days}, {self.start_time}-{self.end_time})"


class DateOverride(BaseModel):
    """Replaces the weekly working hours of one date."""

    event_type = models.ForeignKey(
        EventType, on_delete=models.CASCADE, related_name="date_overrides"
    )
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()

    class Meta:
        ordering = ("date", "start_time", "id")
        constraints = [  # noqa: RUF012
            models.CheckConstraint(
                condition=Q(end_time__gt=F("start_time")),
                name="date_override_end_after_start",
            ),
        ]

    def __str__(self):
        return f"DateOverride({self.date}, {self.start_time}-{self.end_time})"


class BookingQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status__in=[BookingStatus.PENDING, BookingStatus.ACCEPTED])

    def overlapping(self, start_time: datetime.datetime, end_time: datetime.datetime):
        return self.filter(start_time__lt=end_time, end_time__gt=start_time)


class Booking(TimeRangeModel, BaseModel):
    uid = models.CharField(max_length=64, unique=True)
    event_type = models.ForeignKey(EventType, on_delete=models.PROTECT, related_name="bookings")
    host = models.ForeignKey(User, on_delete=models.PROTECT, related_name="hosted_bookings")
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    status = models.CharField(
        max_length=50, choices=BookingStatus, default=BookingStatus.PENDING, db_index=True
    )
    recurring_event_id = models.CharField(max_length=255, blank=True, db_index=True)
    from_reschedule = models.CharField(
        max_length=64, blank=True, help_text="uid of the booking this one replaced."
    )
    rescheduled = models.BooleanField(default=False)
    paid = models.BooleanField(default=False)
    payment = models.ForeignKey(
        Payment, on_delete=models.SET_NULL, related_name="bookings", null=True, blank=True
    )
    cancellation_reason = models.TextField(blank=True)
    rejection_reason = models.TextField(blank=True)
    responses = models.JSONField(default=dict, blank=True)
    location = models.CharField(max_length=255, blank=True)

    objects = BookingQuerySet.as_manager()

    attendees: "RelatedManager[Attendee]"
    references: "RelatedManager[BookingReference]"

    class Meta:
        ordering = ("start_time", "id")
        constraints = [  # noqa: RUF012
            models.CheckConstraint(
                condition=Q(end_time__gt=F("start_time")),
                name="booking_end_after_start",
            ),
        ]

    def __str__(self):
        return f"Booking(uid={self.uid}, status={self.status}, start={self.start_time.isoformat()})"

    @property
    def seats_used(self) -> int:
        return self.attendees.count()

    @property
    def payment_outstanding(self) -> bool:
        return self.payment_id is not None and not self.paid

    def to_busy_interval(self) -> BusyInterval:
        """The booked time widened by the event type buffers."""
        return BusyInterval(
            start=self.start_time - datetime.timedelta(minutes=self.event_type.before_event_buffer),
            end=self.end_time + datetime.timedelta(minutes=self.event_type.after_event_buffer),
            source=INTERNAL_BUSY_SOURCE_TEMPLATE.format(
                event_type_id=self.event_type_id, booking_id=self.pk
            ),
            title=self.title,
        )


class Attendee(BaseModel):
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="attendees")
    email = models.EmailField(max_length=255)
    name = models.CharField(max_length=255)
    time_zone = models.CharField(max_length=64, default="UTC")
    locale = models.CharField(max_length=16, default="en")

    class Meta:
        ordering = ("id",)
        constraints = [  # noqa: RUF012
            models.UniqueConstraint(
                fields=["booking", "email"], name="unique_attendee_email_per_booking"
            ),
        ]

    def __str__(self):
        return f"Attendee({self.email}, booking={self.booking_id})"


class BookingReference(BaseModel):
    """Remote calendar event written for a booking."""

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="references")
    provider = models.CharField(max_length=50, choices=CalendarProvider)
    credential = models.ForeignKey(
        CalendarCredential,
        on_delete=models.SET_NULL,
        related_name="booking_references",
        null=True,
        blank=True,
    )
    calendar_external_id = models.CharField(max_length=255)
    external_id = models.CharField(max_length=255)
    meeting_url = models.URLField(max_length=1024, blank=True)

    def __str__(self):
        return f"BookingReference({self.provider}:{self.external_id}, booking={self.booking_id})"

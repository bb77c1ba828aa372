from django.contrib import admin

from bookings.models import (
    Attendee,
    Booking,
    BookingReference,
    DateOverride,
    EventType,
    EventTypeHost,
    WorkingHours,
)


class EventTypeHostInline(admin.TabularInline):
    model = EventTypeHost
    extra = 0
    autocomplete_fields = ("user",)


class WorkingHoursInline(admin.TabularInline):
    model = WorkingHours
    extra = 0


class DateOverrideInline(admin.TabularInline):
    model = DateOverride
    extra = 0


@admin.register(EventType)
class EventTypeAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "slug",
        "title",
        "owner",
        "length_minutes",
        "scheduling_type",
        "seats_per_time_slot",
        "price",
    )
    list_filter = ("scheduling_type", "period_type", "requires_confirmation")
    search_fields = ("slug", "title", "owner__email")
    inlines = (EventTypeHostInline, WorkingHoursInline, DateOverrideInline)


class AttendeeInline(admin.TabularInline):
    model = Attendee
    extra = 0


class BookingReferenceInline(admin.TabularInline):
    model = BookingReference
    extra = 0
    readonly_fields = ("provider", "credential", "calendar_external_id", "external_id", "meeting_url")


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("id", "uid", "event_type", "host", "start_time", "end_time", "status", "paid")
    list_filter = ("status", "paid", "rescheduled")
    search_fields = ("uid", "title", "host__email", "attendees__email")
    date_hierarchy = "start_time"
    raw_id_fields = ("event_type", "host", "payment")
    readonly_fields = ("uid", "from_reschedule", "recurring_event_id", "created", "modified")
    inlines = (AttendeeInline, BookingReferenceInline)

from django_filters import rest_framework as filters

from bookings.constants import BookingStatus
from bookings.models import Booking


class BookingFilterSet(filters.FilterSet):
    """
    FilterSet for the bookings a host lists.
    """

    status = filters.MultipleChoiceFilter(choices=BookingStatus.choices)
    start_time = filters.DateTimeFilter(
        field_name="start_time",
        lookup_expr="gte",
        label="Start time (greater than or equal to)",
    )
    end_time = filters.DateTimeFilter(
        field_name="end_time",
        lookup_expr="lte",
        label="End time (less than or equal to)",
    )
    event_type = filters.CharFilter(
        field_name="event_type__slug",
        label="Filter by event type slug",
    )
    recurring_event_id = filters.CharFilter(field_name="recurring_event_id")

    class Meta:
        model = Booking
        fields = (
            "status",
            "start_time",
            "end_time",
            "event_type",
            "recurring_event_id",
        )

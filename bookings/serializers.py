import datetime

import django_virtual_models as v
from rest_framework import serializers

from bookings.models import Attendee, Booking, EventType
from bookings.services.dataclasses import AttendeeInputData, BookingRequestData
from bookings.virtual_models import (
    AttendeeVirtualModel,
    BookingVirtualModel,
    EventTypeVirtualModel,
    HostVirtualModel,
)
from common.utils.serializer_utils import TimeZoneField, VirtualModelSerializer
from payments.serializers import PaymentSerializer
from users.models import User


MAX_SLOTS_RANGE_DAYS = 62


class HostSerializer(VirtualModelSerializer):
    name = serializers.SerializerMethodField()

    class Meta:
        model = User
        virtual_model = HostVirtualModel
        fields = ("username", "name", "time_zone")
        read_only_fields = fields

    @v.hints.no_deferred_fields()
    def get_name(self, obj: User) -> str:
        return obj.get_full_name()


class EventTypeSummarySerializer(VirtualModelSerializer):
    class Meta:
        model = EventType
        virtual_model = EventTypeVirtualModel
        fields = ("slug", "title", "length_minutes", "time_zone")
        read_only_fields = fields


class AttendeeSerializer(VirtualModelSerializer):
    class Meta:
        model = Attendee
        virtual_model = AttendeeVirtualModel
        fields = ("email", "name", "time_zone", "locale")
        read_only_fields = fields


class BookingSerializer(VirtualModelSerializer):
    event_type = EventTypeSummarySerializer(read_only=True)
    host = HostSerializer(read_only=True)
    attendees = AttendeeSerializer(many=True, read_only=True)
    payment = PaymentSerializer(read_only=True, allow_null=True)

    class Meta:
        model = Booking
        virtual_model = BookingVirtualModel
        fields = (
            "uid",
            "event_type",
            "host",
            "title",
            "description",
            "start_time",
            "end_time",
            "status",
            "attendees",
            "location",
            "recurring_event_id",
            "from_reschedule",
            "rescheduled",
            "paid",
            "payment",
            "responses",
            "cancellation_reason",
            "rejection_reason",
            "created",
            "modified",
        )
        read_only_fields = fields


class AttendeeInputSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(max_length=255, allow_blank=True, default="")
    time_zone = TimeZoneField(required=False, default="")
    locale = serializers.CharField(max_length=16, required=False, default="")


class BookingRequestSerializer(serializers.Serializer):
    """
    Input of a booking attempt. Only the shape is validated here, the admission rules run in
    ``BookingService.book``.
    """

    event_type = serializers.SlugField()
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    attendee = AttendeeInputSerializer()
    guests = serializers.ListField(child=serializers.EmailField(), required=False, default=list)
    time_zone = TimeZoneField(required=False, default="UTC")
    language = serializers.CharField(max_length=16, required=False, default="en")
    usernames = serializers.ListField(
        child=serializers.CharField(max_length=150), required=False, default=list
    )
    booking_uid = serializers.CharField(max_length=64, required=False, allow_null=True, default=None)
    reschedule_uid = serializers.CharField(
        max_length=64, required=False, allow_null=True, default=None
    )
    reschedule_reason = serializers.CharField(required=False, allow_blank=True, default="")
    recurring_event_id = serializers.CharField(
        max_length=255, required=False, allow_null=True, default=None
    )
    recurring_count = serializers.IntegerField(
        min_value=1, required=False, allow_null=True, default=None
    )
    responses = serializers.DictField(required=False, default=dict)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    location = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if attrs["end"] <= attrs["start"]:
            raise serializers.ValidationError({"end": "End time must be after start time."})
        if attrs["booking_uid"] and attrs["reschedule_uid"]:
            raise serializers.ValidationError(
                "A request can't join a booking and reschedule one at the same time."
            )
        return attrs

    def to_request_data(self) -> BookingRequestData:
        data = self.validated_data
        return BookingRequestData(
            event_type_slug=data["event_type"],
            start_time=data["start"],
            end_time=data["end"],
            attendee=AttendeeInputData(**data["attendee"]),
            guests=data["guests"],
            time_zone=data["time_zone"],
            language=data["language"],
            usernames=data["usernames"],
            booking_uid=data["booking_uid"],
            reschedule_uid=data["reschedule_uid"],
            reschedule_reason=data["reschedule_reason"],
            recurring_event_id=data["recurring_event_id"],
            recurring_count=data["recurring_count"],
            responses=data["responses"],
            notes=data["notes"],
            location=data["location"],
        )


class BookingRejectionSerializer(serializers.Serializer):
    code = serializers.CharField()
    message = serializers.CharField()


class BookingTransitionSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class SlotsQuerySerializer(serializers.Serializer):
    date_from = serializers.DateField()
    date_to = serializers.DateField()
    time_zone = TimeZoneField(required=False, default="UTC")
    compact = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if attrs["date_to"] < attrs["date_from"]:
            raise serializers.ValidationError({"date_to": "date_to must not be before date_from."})
        if attrs["date_to"] - attrs["date_from"] > datetime.timedelta(days=MAX_SLOTS_RANGE_DAYS):
            raise serializers.ValidationError(
                {"date_to": f"The range can't be longer than {MAX_SLOTS_RANGE_DAYS} days."}
            )
        return attrs


class SlotsSerializer(serializers.Serializer):
    """Slots grouped by their date in the requested time zone."""

    time_zone = serializers.CharField()
    slots = serializers.DictField(child=serializers.ListField(child=serializers.CharField()))

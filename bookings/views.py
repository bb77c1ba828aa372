import itertools
from typing import Annotated

from django.db.models import Q

from dependency_injector.wiring import Provide, inject
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from bookings.exceptions import BookingRejectionError
from bookings.filtersets import BookingFilterSet
from bookings.models import Booking, EventType
from bookings.serializers import (
    BookingRejectionSerializer,
    BookingRequestSerializer,
    BookingSerializer,
    BookingTransitionSerializer,
    EventTypeSummarySerializer,
    SlotsQuerySerializer,
    SlotsSerializer,
)
from bookings.services.booking_service import BookingService
from bookings.services.slots_service import SlotsService
from common.exceptions import ServiceNotInjectedError
from common.utils.view_utils import ReadOnlyBookingEngineModelViewSet
from payments.serializers import PaymentSummarySerializer


def rejection_response(code: str, message: str, http_status: int) -> Response:
    return Response({"code": code, "message": message}, status=http_status)


class BookingViewSet(ReadOnlyBookingEngineModelViewSet):
    """
    Booking attempts are public. Listing, retrieving and changing the status of bookings is
    limited to their host, except cancelling which attendees may do too.
    """

    filterset_class = BookingFilterSet
    queryset = Booking.objects.all()
    serializer_class = BookingSerializer
    lookup_field = "uid"

    @inject
    def __init__(
        self,
        *args,
        booking_service: Annotated["BookingService | None", Provide["booking_service"]] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.booking_service = booking_service

    def get_permissions(self):
        if self.action == "create":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get_queryset(self):
        user = self.request.user
        if not user.is_authenticated:
            return Booking.objects.none()

        queryset = super().get_queryset()
        if self.action == "cancel":
            return queryset.filter(Q(host=user) | Q(attendees__email__iexact=user.email)).distinct()
        return queryset.filter(host=user)

    def _get_booking_service(self) -> BookingService:
        if not self.booking_service:
            raise ServiceNotInjectedError("booking_service")
        return self.booking_service

    @extend_schema(
        summary="Book a time slot",
        request=BookingRequestSerializer,
        responses={
            201: BookingSerializer,
            400: BookingRejectionSerializer,
            404: BookingRejectionSerializer,
            409: BookingRejectionSerializer,
        },
    )
    def create(self, request, *args, **kwargs):
        serializer = BookingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        actor = request.user if request.user.is_authenticated else None
        result = self._get_booking_service().book(serializer.to_request_data(), actor=actor)
        if not result.succeeded:
            return rejection_response(
                result.rejection.code, result.rejection.message, result.rejection.http_status
            )

        data = BookingSerializer(result.booking, context=self.get_serializer_context()).data
        data["payment_required"] = result.payment_required
        if result.payment is not None:
            data["payment"] = PaymentSummarySerializer(result.payment).data
        if len(result.bookings) > 1:
            data["recurring_bookings"] = [booking.uid for booking in result.bookings]
        return Response(data, status=status.HTTP_201_CREATED)

    def _transition(self, request, transition):
        booking = self.get_object()
        serializer = BookingTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            booking = transition(booking.uid, request.user, serializer.validated_data["reason"])
        except BookingRejectionError as e:
            return rejection_response(e.code, e.message, e.http_status)
        return Response(self.get_serializer(self.get_return_object(booking)).data)

    @extend_schema(
        summary="Confirm a pending booking",
        request=None,
        responses={200: BookingSerializer, 409: BookingRejectionSerializer},
    )
    @action(detail=True, methods=["post"])
    def confirm(self, request, uid=None):
        service = self._get_booking_service()
        return self._transition(
            request, lambda booking_uid, actor, reason: service.confirm_booking(booking_uid, actor)
        )

    @extend_schema(
        summary="Reject a pending booking",
        request=BookingTransitionSerializer,
        responses={200: BookingSerializer, 409: BookingRejectionSerializer},
    )
    @action(detail=True, methods=["post"])
    def reject(self, request, uid=None):
        return self._transition(request, self._get_booking_service().reject_booking)

    @extend_schema(
        summary="Cancel a booking",
        request=BookingTransitionSerializer,
        responses={200: BookingSerializer, 409: BookingRejectionSerializer},
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, uid=None):
        return self._transition(request, self._get_booking_service().cancel_booking)


class EventTypeViewSet(mixins.RetrieveModelMixin, GenericViewSet):
    """Public event type details and bookable slots."""

    queryset = EventType.objects.all()
    serializer_class = EventTypeSummarySerializer
    lookup_field = "slug"
    permission_classes = (AllowAny,)

    @extend_schema(
        summary="List bookable slots",
        parameters=[
            OpenApiParameter(
                name="date_from",
                type=str,
                location=OpenApiParameter.QUERY,
                description="First date (YYYY-MM-DD) in the given time zone",
                required=True,
            ),
            OpenApiParameter(
                name="date_to",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Last date (YYYY-MM-DD) in the given time zone, included",
                required=True,
            ),
            OpenApiParameter(
                name="time_zone",
                type=str,
                location=OpenApiParameter.QUERY,
                description="IANA time zone of the invitee. Defaults to UTC",
                required=False,
            ),
            OpenApiParameter(
                name="compact",
                type=bool,
                location=OpenApiParameter.QUERY,
                description="Pack slots right after busy times. Single-host event types only",
                required=False,
            ),
        ],
        responses={200: SlotsSerializer},
    )
    @action(detail=True, methods=["get"])
    @inject
    def slots(
        self,
        request,
        slug=None,
        slots_service: Annotated["SlotsService | None", Provide["slots_service"]] = None,
    ):
        if not slots_service:
            raise ServiceNotInjectedError("slots_service")

        event_type = self.get_object()
        query = SlotsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        slots = slots_service.get_available_slots(
            event_type,
            date_from=query.validated_data["date_from"],
            date_to=query.validated_data["date_to"],
            time_zone=query.validated_data["time_zone"],
            compact=query.validated_data["compact"],
        )
        slots_by_date = {
            day.isoformat(): [slot.isoformat() for slot in day_slots]
            for day, day_slots in itertools.groupby(slots, key=lambda slot: slot.date())
        }
        return Response(
            SlotsSerializer(
                {"time_zone": query.validated_data["time_zone"], "slots": slots_by_date}
            ).data
        )

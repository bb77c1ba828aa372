from typing import Annotated

from dependency_injector.wiring import Provide, inject
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.exceptions import ServiceNotInjectedError
from common.utils.view_utils import BookingEngineModelViewSet, ReadOnlyBookingEngineModelViewSet
from webhooks.constants import WebhookDeliveryStatus
from webhooks.models import WebhookDelivery, WebhookSubscription
from webhooks.serializers import WebhookDeliverySerializer, WebhookSubscriptionSerializer
from webhooks.services import WebhookService


class WebhookSubscriptionViewSet(BookingEngineModelViewSet):
    """
    Webhook subscriptions of the authenticated host. Deleting a subscription keeps its
    deliveries around.
    """

    queryset = WebhookSubscription.objects.all()
    serializer_class = WebhookSubscriptionSerializer
    permission_classes = (IsAuthenticated,)
    filterset_fields = ("active", "event_type")

    def get_queryset(self):
        return self.queryset.filter(user=self.request.user, deleted_at__isnull=True)

    @inject
    def perform_destroy(
        self,
        instance: WebhookSubscription,
        webhook_service: Annotated["WebhookService | None", Provide["webhook_service"]] = None,
    ):
        if not webhook_service:
            raise ServiceNotInjectedError("webhook_service")

        webhook_service.delete_subscription(instance)


class WebhookDeliveryViewSet(ReadOnlyBookingEngineModelViewSet):
    """
    Deliveries sent to the authenticated host's subscriptions, with a manual retry action.
    """

    queryset = WebhookDelivery.objects.all()
    serializer_class = WebhookDeliverySerializer
    permission_classes = (IsAuthenticated,)
    filterset_fields = ("status", "trigger", "booking_uid", "subscription")

    @inject
    def __init__(
        self,
        *args,
        webhook_service: Annotated["WebhookService | None", Provide["webhook_service"]] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.webhook_service = webhook_service

    def get_queryset(self):
        return self.queryset.filter(user=self.request.user).select_related(
            "subscription", "first_attempt"
        )

    @extend_schema(
        description="Send a failed delivery again, to the subscription's current url",
        request=None,
        responses={
            200: WebhookDeliverySerializer,
            400: {"description": "Only failed deliveries can be retried"},
            404: {"description": "Delivery not found"},
        },
    )
    @action(detail=True, methods=["post"])
    def retry(self, request, pk=None):
        if not self.webhook_service:
            raise ServiceNotInjectedError("webhook_service")

        delivery = self.get_object()
        if delivery.status != WebhookDeliveryStatus.FAILED:
            return Response(
                {"error": "Only failed deliveries can be retried"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        retry = self.webhook_service.schedule_retry(
            delivery, use_current_subscription=True, is_manual=True
        )
        return Response(self.get_serializer(retry).data, status=status.HTTP_200_OK)

from typing import Annotated

from django.db.models import Q

from dependency_injector.wiring import Provide, inject
from rest_framework import serializers

from bookings.models import EventType
from common.exceptions import ServiceNotInjectedError
from common.utils.serializer_utils import VirtualModelSerializer
from webhooks.constants import WebhookTrigger
from webhooks.models import WebhookDelivery, WebhookSubscription
from webhooks.services import WebhookService
from webhooks.virtual_models import WebhookDeliveryVirtualModel, WebhookSubscriptionVirtualModel


class WebhookSubscriptionSerializer(VirtualModelSerializer):
    triggers = serializers.ListField(
        child=serializers.ChoiceField(choices=WebhookTrigger.choices), allow_empty=False
    )
    event_type = serializers.SlugRelatedField(
        slug_field="slug",
        queryset=EventType.objects.all(),
        required=False,
        allow_null=True,
    )
    secret = serializers.CharField(
        write_only=True, required=False, allow_blank=True, max_length=255
    )

    class Meta:
        model = WebhookSubscription
        virtual_model = WebhookSubscriptionVirtualModel
        fields = (
            "id",
            "subscriber_url",
            "triggers",
            "event_type",
            "secret",
            "headers",
            "active",
            "created",
        )
        read_only_fields = ("id", "created")

    @inject
    def __init__(
        self,
        *args,
        webhook_service: Annotated["WebhookService | None", Provide["webhook_service"]] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.webhook_service = webhook_service

    def validate_event_type(self, event_type: EventType | None) -> EventType | None:
        user = self.context["request"].user
        if event_type is not None and not EventType.objects.filter(
            Q(owner=user) | Q(hosts__user=user), pk=event_type.pk
        ).exists():
            raise serializers.ValidationError("You don't host this event type.")
        return event_type

    def create(self, validated_data):
        if not self.webhook_service:
            raise ServiceNotInjectedError("webhook_service")
        return self.webhook_service.create_subscription(
            user=self.context["request"].user, **validated_data
        )

    def update(self, instance, validated_data):
        if not self.webhook_service:
            raise ServiceNotInjectedError("webhook_service")
        return self.webhook_service.update_subscription(instance, **validated_data)


class WebhookDeliverySerializer(VirtualModelSerializer):
    subscription = serializers.PrimaryKeyRelatedField(read_only=True)
    first_attempt = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = WebhookDelivery
        virtual_model = WebhookDeliveryVirtualModel
        fields = (
            "id",
            "subscription",
            "first_attempt",
            "trigger",
            "booking_uid",
            "url",
            "status",
            "body",
            "response_status",
            "response_body",
            "retry_number",
            "send_after",
            "created",
        )
        read_only_fields = fields

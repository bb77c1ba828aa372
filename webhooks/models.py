from django.db import models
from django.db.models import Q

from common.models import BaseModel
from users.models import User
from webhooks.constants import WebhookDeliveryStatus, WebhookTrigger


class WebhookSubscriptionQuerySet(models.QuerySet):
    def active(self):
        return self.filter(active=True, deleted_at__isnull=True)

    def listening_to(
        self, user: User, trigger: WebhookTrigger, event_type_id: int | None = None
    ) -> list["WebhookSubscription"]:
        """
        Active subscriptions of ``user`` that want ``trigger`` for the given event type.
        Subscriptions without an event type receive events of every event type of the user.
        """
        subscriptions = self.active().filter(
            Q(event_type__isnull=True) | Q(event_type_id=event_type_id), user=user
        )
        # JSON containment lookups are not portable across database backends
        return [s for s in subscriptions.order_by("id") if trigger in s.triggers]


class WebhookSubscription(BaseModel):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="webhook_subscriptions")
    event_type = models.ForeignKey(
        "bookings.EventType",
        on_delete=models.CASCADE,
        related_name="webhook_subscriptions",
        null=True,
        blank=True,
        help_text="Only deliver events of this event type. Empty means every event type.",
    )
    subscriber_url = models.URLField(max_length=2000)
    triggers = models.JSONField(default=list)
    secret = models.CharField(
        max_length=255, blank=True, help_text="Signs the delivered body with HMAC-SHA256."
    )
    headers = models.JSONField(default=dict, blank=True)
    active = models.BooleanField(default=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = WebhookSubscriptionQuerySet.as_manager()

    class Meta:
        ordering = ("id",)

    def __str__(self):
        return f"WebhookSubscription(id={self.id}, url={self.subscriber_url})"


class WebhookDelivery(BaseModel):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="webhook_deliveries")
    subscription = models.ForeignKey(
        WebhookSubscription, on_delete=models.CASCADE, related_name="deliveries"
    )
    trigger = models.CharField(max_length=50, choices=WebhookTrigger)
    booking_uid = models.CharField(max_length=64, blank=True, db_index=True)
    url = models.URLField(max_length=2000)
    status = models.CharField(
        max_length=50,
        choices=WebhookDeliveryStatus,
        default=WebhookDeliveryStatus.PENDING,
    )
    headers = models.JSONField(default=dict)
    body = models.JSONField()
    response_status = models.PositiveIntegerField(null=True, blank=True)
    response_body = models.JSONField(null=True, blank=True)
    response_headers = models.JSONField(null=True, blank=True)

    first_attempt = models.ForeignKey(
        "self",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="retries",
    )
    retry_number = models.PositiveIntegerField(default=0)
    send_after = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ("-created", "-id")
        verbose_name_plural = "webhook deliveries"

    def __str__(self):
        return f"WebhookDelivery(id={self.id}, trigger={self.trigger}, url={self.url})"

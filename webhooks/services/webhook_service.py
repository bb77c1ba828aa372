import datetime
import hashlib
import hmac
import json
import logging
from typing import TYPE_CHECKING

from django.core.serializers.json import DjangoJSONEncoder

import requests

from users.models import User
from webhooks.constants import (
    DELIVERY_TIMEOUT_SECONDS,
    MAX_DELIVERY_RETRIES,
    SIGNATURE_HEADER,
    TRIGGER_HEADER,
    WebhookDeliveryStatus,
    WebhookTrigger,
)
from webhooks.models import WebhookDelivery, WebhookSubscription
from webhooks.services.payloads import WebhookBody
from webhooks.tasks import deliver_webhook


if TYPE_CHECKING:
    from bookings.models import EventType


logger = logging.getLogger(__name__)


def sign_body(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def encode_body(body: dict) -> bytes:
    return json.dumps(body, cls=DjangoJSONEncoder, separators=(",", ":")).encode("utf-8")


class WebhookService:
    def create_subscription(
        self,
        user: User,
        subscriber_url: str,
        triggers: list[WebhookTrigger],
        event_type: "EventType | None" = None,
        secret: str = "",
        headers: dict | None = None,
        active: bool = True,
    ) -> WebhookSubscription:
        return WebhookSubscription.objects.create(
            user=user,
            subscriber_url=subscriber_url,
            triggers=list(dict.fromkeys(triggers)),
            event_type=event_type,
            secret=secret,
            headers=headers or {},
            active=active,
        )

    def update_subscription(self, subscription: WebhookSubscription, **fields) -> WebhookSubscription:
        if "triggers" in fields:
            fields["triggers"] = list(dict.fromkeys(fields["triggers"]))
        for name, value in fields.items():
            setattr(subscription, name, value)
        subscription.save()
        return subscription

    def delete_subscription(self, subscription: WebhookSubscription) -> None:
        subscription.deleted_at = datetime.datetime.now(tz=datetime.UTC)
        subscription.active = False
        subscription.save(update_fields=["deleted_at", "active", "modified"])

    def send_event(
        self,
        user: User,
        trigger: WebhookTrigger,
        payload: dict,
        event_type_id: int | None = None,
        booking_uid: str = "",
    ) -> list[WebhookDelivery]:
        """
        Queue a delivery of ``payload`` to every subscription of ``user`` listening to
        ``trigger``. The url and headers are copied into the delivery so later subscription
        edits don't change what an automatic retry sends.
        """
        body: WebhookBody = {
            "trigger": trigger,
            "created_at": datetime.datetime.now(tz=datetime.UTC).isoformat(),
            "payload": payload,
        }

        deliveries = []
        for subscription in WebhookSubscription.objects.listening_to(user, trigger, event_type_id):
            delivery = WebhookDelivery.objects.create(
                user=user,
                subscription=subscription,
                trigger=trigger,
                booking_uid=booking_uid,
                url=subscription.subscriber_url,
                headers=subscription.headers,
                body=body,
            )
            deliveries.append(delivery)
            deliver_webhook.delay(delivery_id=delivery.pk, user_id=user.pk)
        return deliveries

    def schedule_retry(
        self,
        delivery: WebhookDelivery,
        use_current_subscription: bool = False,
        is_manual: bool = False,
    ) -> WebhookDelivery | None:
        """Schedule another attempt of a failed delivery.

        Args:
            delivery (WebhookDelivery): The failed delivery.
            use_current_subscription (bool, optional): Send to the subscription's current url and
                headers instead of the ones of the failed attempt. Defaults to False.
            is_manual (bool, optional): Skip the exponential backoff and the retry limit.
                Defaults to False.

        Returns:
            WebhookDelivery: The scheduled attempt, None once the retries are exhausted.
        """
        retry_number = delivery.retry_number + 1
        if not is_manual and retry_number > MAX_DELIVERY_RETRIES:
            return None

        backoff_seconds = 0 if is_manual else 2 ** (retry_number - 1)
        subscription = delivery.subscription
        retry = WebhookDelivery.objects.create(
            user=delivery.user,
            subscription=subscription,
            trigger=delivery.trigger,
            booking_uid=delivery.booking_uid,
            url=subscription.subscriber_url if use_current_subscription else delivery.url,
            headers=subscription.headers if use_current_subscription else delivery.headers,
            body=delivery.body,
            send_after=(
                datetime.datetime.now(tz=datetime.UTC)
                + datetime.timedelta(seconds=backoff_seconds)
            ),
            first_attempt=delivery.first_attempt or delivery,
            retry_number=retry_number,
        )
        deliver_webhook.apply_async(
            kwargs={"delivery_id": retry.pk, "user_id": retry.user_id},
            countdown=backoff_seconds,
        )
        return retry

    def build_request_headers(self, delivery: WebhookDelivery, body: bytes) -> dict[str, str]:
        headers = {
            **delivery.headers,
            "Content-Type": "application/json",
            TRIGGER_HEADER: delivery.trigger,
        }
        if delivery.subscription.secret:
            headers[SIGNATURE_HEADER] = sign_body(delivery.subscription.secret, body)
        return headers

    def deliver(self, delivery: WebhookDelivery) -> WebhookDelivery:
        """
        POST the delivery body and record the response. Non-2xx answers and network errors mark
        the delivery as failed and schedule a retry with exponential backoff.
        """
        body = encode_body(delivery.body)
        try:
            response = requests.post(
                delivery.url,
                data=body,
                headers=self.build_request_headers(delivery, body),
                timeout=DELIVERY_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.warning("Webhook delivery %s to %s failed: %s", delivery.pk, delivery.url, e)
            delivery.status = WebhookDeliveryStatus.FAILED
            delivery.response_body = {"error": str(e)}
            delivery.save()
            self._retry_if_allowed(delivery)
            return delivery

        delivery.status = (
            WebhookDeliveryStatus.DELIVERED
            if 200 <= response.status_code < 300
            else WebhookDeliveryStatus.FAILED
        )
        delivery.response_status = response.status_code
        try:
            delivery.response_body = {"body": response.json()}
        except ValueError:
            delivery.response_body = {"body": response.text}
        delivery.response_headers = dict(response.headers)
        delivery.save()

        if delivery.status == WebhookDeliveryStatus.FAILED:
            logger.info(
                "Webhook delivery %s answered %s", delivery.pk, response.status_code
            )
            self._retry_if_allowed(delivery)
        return delivery

    def _retry_if_allowed(self, delivery: WebhookDelivery):
        if delivery.retry_number < MAX_DELIVERY_RETRIES:
            self.schedule_retry(delivery)

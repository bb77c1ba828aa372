import datetime
from typing import TYPE_CHECKING, Annotated

from dependency_injector.wiring import Provide, inject

from booking_engine.celery import app
from webhooks.constants import WebhookDeliveryStatus
from webhooks.models import WebhookDelivery


if TYPE_CHECKING:
    from webhooks.services import WebhookService


@app.task
@inject
def deliver_webhook(
    delivery_id: int,
    user_id: int,
    webhook_service: Annotated["WebhookService | None", Provide["webhook_service"]] = None,
):
    if not webhook_service:
        return

    delivery = (
        WebhookDelivery.objects.filter(
            id=delivery_id, user_id=user_id, status=WebhookDeliveryStatus.PENDING
        )
        .select_related("subscription")
        .first()
    )
    if not delivery or not delivery.subscription.active:
        return

    if delivery.send_after and delivery.send_after > datetime.datetime.now(tz=datetime.UTC):
        return

    webhook_service.deliver(delivery)

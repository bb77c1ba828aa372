import django_virtual_models as v

from webhooks.models import WebhookDelivery, WebhookSubscription


class WebhookSubscriptionVirtualModel(v.VirtualModel):
    class Meta:
        model = WebhookSubscription


class WebhookDeliveryVirtualModel(v.VirtualModel):
    class Meta:
        model = WebhookDelivery

from common.types import RouteDict

from .views import WebhookDeliveryViewSet, WebhookSubscriptionViewSet


routes: list[RouteDict] = [
    {
        "regex": r"webhook-subscriptions",
        "viewset": WebhookSubscriptionViewSet,
        "basename": "WebhookSubscriptions",
    },
    {
        "regex": r"webhook-deliveries",
        "viewset": WebhookDeliveryViewSet,
        "basename": "WebhookDeliveries",
    },
]

import datetime
import json
from unittest.mock import patch

from django.urls import reverse

import pytest
from model_bakery import baker
from rest_framework import status

from bookings.models import EventType
from webhooks.constants import WebhookDeliveryStatus, WebhookTrigger
from webhooks.models import WebhookDelivery, WebhookSubscription


def assert_response_status_code(response, expected_status_code):
    """Helper function to assert response status with useful error message."""
    assert response.status_code == expected_status_code, (
        f"The status error {response.status_code} != {expected_status_code}\n"
        f"Response Payload: {json.dumps(response.json() if hasattr(response, 'json') else str(response.content))}"
    )


def make_subscription(user, **kwargs):
    kwargs.setdefault("subscriber_url", "https://example.com/webhook")
    kwargs.setdefault("triggers", [WebhookTrigger.BOOKING_CREATED])
    return baker.make(WebhookSubscription, user=user, headers={"X-Token": "abc"}, **kwargs)


def make_delivery(subscription, status=WebhookDeliveryStatus.PENDING, retry_number=0):
    return baker.make(
        WebhookDelivery,
        user=subscription.user,
        subscription=subscription,
        trigger=WebhookTrigger.BOOKING_CREATED,
        booking_uid="booking-uid",
        url=subscription.subscriber_url,
        status=status,
        headers=subscription.headers,
        body={"trigger": WebhookTrigger.BOOKING_CREATED, "payload": {"uid": "booking-uid"}},
        retry_number=retry_number,
    )


@pytest.fixture
def subscription(host):
    return make_subscription(host)


@pytest.mark.django_db
class TestWebhookSubscriptionViewSet:
    def test_list_subscriptions(self, host_client, host, user, subscription):
        make_subscription(host, deleted_at=datetime.datetime.now(tz=datetime.UTC))
        make_subscription(user)

        response = host_client.get(reverse("api:WebhookSubscriptions-list"))

        assert_response_status_code(response, status.HTTP_200_OK)
        (item,) = response.json()["results"]
        assert item["id"] == subscription.id
        assert item["triggers"] == [WebhookTrigger.BOOKING_CREATED]
        assert item["subscriber_url"] == "https://example.com/webhook"
        assert "secret" not in item

    def test_list_unauthenticated(self, anonymous_client):
        response = anonymous_client.get(reverse("api:WebhookSubscriptions-list"))

        assert_response_status_code(response, status.HTTP_401_UNAUTHORIZED)

    def test_retrieve_other_users_subscription(self, auth_client, subscription):
        url = reverse("api:WebhookSubscriptions-detail", kwargs={"pk": subscription.pk})

        response = auth_client.get(url)

        assert_response_status_code(response, status.HTTP_404_NOT_FOUND)

    def test_create_subscription(self, host_client, host, event_type):
        response = host_client.post(
            reverse("api:WebhookSubscriptions-list"),
            {
                "subscriber_url": "https://example.com/bookings",
                "triggers": [WebhookTrigger.BOOKING_CANCELLED, WebhookTrigger.BOOKING_CANCELLED],
                "event_type": "intro-call",
                "secret": "shh",
            },
            format="json",
        )

        assert_response_status_code(response, status.HTTP_201_CREATED)
        created = WebhookSubscription.objects.get(id=response.json()["id"])
        assert created.user == host
        assert created.triggers == [WebhookTrigger.BOOKING_CANCELLED]
        assert created.event_type == event_type
        assert created.secret == "shh"
        assert response.json()["event_type"] == "intro-call"

    def test_create_subscription_for_someone_elses_event_type(self, host_client, user):
        baker.make(EventType, slug="not-mine", owner=user, length_minutes=30)

        response = host_client.post(
            reverse("api:WebhookSubscriptions-list"),
            {
                "subscriber_url": "https://example.com/bookings",
                "triggers": [WebhookTrigger.BOOKING_CREATED],
                "event_type": "not-mine",
            },
            format="json",
        )

        assert_response_status_code(response, status.HTTP_400_BAD_REQUEST)
        assert "event_type" in response.json()

    def test_create_subscription_without_triggers(self, host_client):
        response = host_client.post(
            reverse("api:WebhookSubscriptions-list"),
            {"subscriber_url": "https://example.com/bookings", "triggers": []},
            format="json",
        )

        assert_response_status_code(response, status.HTTP_400_BAD_REQUEST)
        assert "triggers" in response.json()

    def test_partial_update_subscription(self, host_client, subscription):
        url = reverse("api:WebhookSubscriptions-detail", kwargs={"pk": subscription.pk})

        response = host_client.patch(url, {"active": False}, format="json")

        assert_response_status_code(response, status.HTTP_200_OK)
        subscription.refresh_from_db()
        assert subscription.active is False
        assert subscription.subscriber_url == "https://example.com/webhook"

    def test_destroy_is_soft_delete(self, host_client, subscription):
        url = reverse("api:WebhookSubscriptions-detail", kwargs={"pk": subscription.pk})

        response = host_client.delete(url)

        assert_response_status_code(response, status.HTTP_204_NO_CONTENT)
        subscription.refresh_from_db()
        assert subscription.deleted_at is not None
        assert subscription.active is False


@pytest.mark.django_db
class TestWebhookDeliveryViewSet:
    def test_list_deliveries(self, host_client, user, subscription):
        delivery = make_delivery(subscription)
        make_delivery(make_subscription(user))

        response = host_client.get(reverse("api:WebhookDeliveries-list"))

        assert_response_status_code(response, status.HTTP_200_OK)
        (item,) = response.json()["results"]
        assert item["id"] == delivery.id
        assert item["subscription"] == subscription.id
        assert item["body"]["payload"] == {"uid": "booking-uid"}

    def test_list_deliveries_filtered_by_status(self, host_client, subscription):
        make_delivery(subscription)
        failed = make_delivery(subscription, status=WebhookDeliveryStatus.FAILED)

        response = host_client.get(
            reverse("api:WebhookDeliveries-list"), {"status": WebhookDeliveryStatus.FAILED}
        )

        assert_response_status_code(response, status.HTTP_200_OK)
        assert [item["id"] for item in response.json()["results"]] == [failed.id]

    def test_deliveries_are_read_only(self, host_client, subscription):
        delivery = make_delivery(subscription)
        url = reverse("api:WebhookDeliveries-detail", kwargs={"pk": delivery.pk})

        response = host_client.delete(url)

        assert_response_status_code(response, status.HTTP_405_METHOD_NOT_ALLOWED)

    @patch("webhooks.services.webhook_service.deliver_webhook.apply_async")
    def test_retry_failed_delivery(self, mock_apply_async, host_client, subscription):
        delivery = make_delivery(subscription, status=WebhookDeliveryStatus.FAILED, retry_number=5)
        subscription.subscriber_url = "https://example.com/fixed"
        subscription.save()

        response = host_client.post(
            reverse("api:WebhookDeliveries-retry", kwargs={"pk": delivery.pk})
        )

        assert_response_status_code(response, status.HTTP_200_OK)
        data = response.json()
        assert data["retry_number"] == 6
        assert data["first_attempt"] == delivery.id
        assert data["url"] == "https://example.com/fixed"
        assert data["status"] == WebhookDeliveryStatus.PENDING
        assert mock_apply_async.call_args[1]["countdown"] == 0

    def test_retry_pending_delivery_is_refused(self, host_client, subscription):
        delivery = make_delivery(subscription)

        response = host_client.post(
            reverse("api:WebhookDeliveries-retry", kwargs={"pk": delivery.pk})
        )

        assert_response_status_code(response, status.HTTP_400_BAD_REQUEST)
        assert response.json() == {"error": "Only failed deliveries can be retried"}

from unittest.mock import MagicMock

from django.urls import reverse

import pytest
from rest_framework import status

from payments.exceptions import PaymentReferenceMismatchError
from payments.services.payment_service import PaymentService


@pytest.mark.django_db
class TestPaymentsViewSet:
    def test_payment_update_is_forwarded_to_the_service(self, anonymous_client, di_container):
        payment_service = MagicMock(spec=PaymentService)
        payload = {"id": 1, "type": "payment", "action": "payment.updated", "data": {"id": "mp-1"}}

        with di_container.payment_service.override(payment_service):
            response = anonymous_client.post(
                reverse("api:Payments-payment-update", kwargs={"uid": "pay-uid"}),
                payload,
                format="json",
            )

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"message": "Payment update received."}
        payment_service.receive_payment_update.assert_called_once_with(
            payload, payment_uid="pay-uid"
        )

    def test_payment_update_only_accepts_post(self, anonymous_client):
        response = anonymous_client.get(
            reverse("api:Payments-payment-update", kwargs={"uid": "pay-uid"})
        )

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED

    def test_payment_update_for_another_payment(self, anonymous_client, di_container):
        payment_service = MagicMock(spec=PaymentService)
        payment_service.receive_payment_update.side_effect = PaymentReferenceMismatchError(
            "Gateway payment references other-uid, not pay-uid"
        )

        with di_container.payment_service.override(payment_service):
            response = anonymous_client.post(
                reverse("api:Payments-payment-update", kwargs={"uid": "pay-uid"}),
                {"type": "payment"},
                format="json",
            )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data == {"message": "Gateway payment references other-uid, not pay-uid"}

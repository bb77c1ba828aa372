import json
import logging
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.urls import reverse

import mercadopago
import mercadopago.config

from payments.constants import PaymentProviders, PaymentStatuses
from payments.exceptions import PaymentAdapterError
from payments.services.dataclasses import CheckoutData, PaymentData, PaymentStatusUpdate
from payments.services.payment_adapters.base import BasePaymentAdapter


logger = logging.getLogger(__name__)


PAYMENT_STATUS_MAPPING: dict[str, str] = {
    "pending": PaymentStatuses.PENDING,
    "authorized": PaymentStatuses.PENDING,
    "in_process": PaymentStatuses.IN_PROCESS,
    "in_mediation": PaymentStatuses.IN_MEDIATION,
    "approved": PaymentStatuses.APPROVED,
    "rejected": PaymentStatuses.REJECTED,
    "cancelled": PaymentStatuses.CANCELLED,
    "refunded": PaymentStatuses.REFUNDED,
    "charged_back": PaymentStatuses.CHARGED_BACK,
}

# currencies MercadoPago charges without decimal places
ZERO_DECIMAL_CURRENCIES = frozenset({"clp", "cop", "pyg"})


class MercadoPagoPaymentAdapter(BasePaymentAdapter):
    """Checkout Pro: each payment becomes a preference the payer completes on MercadoPago."""

    provider = PaymentProviders.MERCADOPAGO

    def __init__(self, access_token: str):
        self.sdk = mercadopago.SDK(access_token)

    def _get_notification_url(self, payment: PaymentData) -> str:
        site_domain = getattr(settings, "SITE_DOMAIN", None)
        if not site_domain:
            raise ImproperlyConfigured(
                "MercadoPagoAdapter requires SITE_DOMAIN to be set in settings.py"
            )
        notification_path = reverse("api:Payments-payment-update", kwargs={"uid": payment.uid})
        return f"https://{site_domain}{notification_path}"

    def _to_unit_price(self, payment: PaymentData) -> Decimal:
        if payment.currency.lower() in ZERO_DECIMAL_CURRENCIES:
            return Decimal(payment.amount)
        return Decimal(payment.amount) / 100

    def create_checkout(self, payment: PaymentData) -> CheckoutData:
        request_options = mercadopago.config.RequestOptions()
        request_options.custom_headers = {"x-idempotency-key": payment.uid}

        preference_data = {
            "items": [
                {
                    "id": payment.uid,
                    "title": payment.description,
                    "quantity": 1,
                    "currency_id": payment.currency.upper(),
                    "unit_price": float(self._to_unit_price(payment)),
                }
            ],
            "payer": {"email": payment.payer_email},
            "external_reference": payment.uid,
            "notification_url": self._get_notification_url(payment),
        }
        result = self.sdk.preference().create(preference_data, request_options)
        response = result.get("response") or {}
        if result.get("status") not in (200, 201) or "id" not in response:
            raise PaymentAdapterError(
                f"MercadoPago preference creation failed with status {result.get('status')}"
            )
        return CheckoutData(external_id=str(response["id"]), checkout_url=response["init_point"])

    def check_status(
        self, payment_external_id: str, update_id: str | None = None
    ) -> PaymentStatusUpdate:
        response = self.sdk.payment().get(payment_external_id)["response"]
        original_status = response.get("status", "")
        status = PAYMENT_STATUS_MAPPING.get(original_status, PaymentStatuses.UNKNOWN)
        if status == PaymentStatuses.UNKNOWN:
            logger.error("Unknown payment status: %s", json.dumps(response))
        return PaymentStatusUpdate(
            status=status,
            original_status=original_status,
            description=response.get("status_detail"),
            payment_reference=response.get("external_reference"),
            update_external_id=update_id or str(payment_external_id),
        )

    def get_payment_external_id_from_update(self, update_payload: dict) -> str | None:
        return update_payload.get("data", {}).get("id")

    def get_update_id(self, update_payload: dict) -> str | None:
        update_id = update_payload.get("id")
        return str(update_id) if update_id is not None else None

    def receive_update(self, update_payload: dict) -> PaymentStatusUpdate | None:
        if update_payload.get("type") != "payment" or update_payload.get("action") not in (
            "payment.created",
            "payment.updated",
        ):
            return None
        return super().receive_update(update_payload)

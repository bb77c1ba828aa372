from typing import TYPE_CHECKING

from django.db import models

from common.models import BaseModel
from common.utils.model_utils import generate_unique_id
from payments.constants import PaymentProviders, PaymentStatuses
from users.models import User


if TYPE_CHECKING:
    from django_stubs_ext.db.models.manager import RelatedManager


class Payment(BaseModel):
    """
    Charge for a paid booking. Amounts are in the currency's minor units.
    Created as ``pending_send`` and sent to the gateway once the booking is committed.
    """

    uid = models.CharField(max_length=64, unique=True, default=generate_unique_id, editable=False)
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        related_name="received_payments",
        null=True,
        blank=True,
        help_text="Host receiving the payment.",
    )
    amount = models.PositiveIntegerField()
    currency = models.CharField(max_length=10)
    payment_provider = models.CharField(
        max_length=50, choices=PaymentProviders, default=PaymentProviders.MERCADOPAGO
    )
    external_id = models.CharField(max_length=255, blank=True)
    status = models.CharField(
        max_length=50, choices=PaymentStatuses, default=PaymentStatuses.PENDING_SEND
    )
    original_status = models.CharField(max_length=50, blank=True)
    checkout_url = models.URLField(max_length=1024, blank=True)
    description = models.TextField(blank=True)
    payer_email = models.EmailField(max_length=255)

    status_updates: "RelatedManager[PaymentStatusUpdate]"

    def __str__(self):
        return f"{self.id} {self.uid} - {self.amount} {self.currency} - {self.payment_provider} - {self.status}"

    @property
    def is_approved(self) -> bool:
        return self.status == PaymentStatuses.APPROVED


class PaymentStatusUpdate(BaseModel):
    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name="status_updates")
    status = models.CharField(max_length=50, choices=PaymentStatuses)
    description = models.TextField(blank=True)
    external_id = models.CharField(max_length=255, blank=True)

    def __str__(self):
        return f"{self.id} {self.payment} - {self.status} - {self.created.isoformat()}"

from dataclasses import dataclass


@dataclass
class PaymentData:
    """What the gateway needs to charge for a booking. ``amount`` is in minor units."""

    id: int | None  # noqa: A003
    uid: str
    amount: int
    currency: str
    description: str
    payer_email: str
    status: str


@dataclass
class CheckoutData:
    external_id: str
    checkout_url: str


@dataclass
class PaymentStatusUpdate:
    status: str
    original_status: str
    description: str | None
    # local Payment.uid the gateway payment refers to
    payment_reference: str | None = None
    update_external_id: str | None = None

    def __str__(self):
        return f"{self.payment_reference} {self.status} - {self.description}"

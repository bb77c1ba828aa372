import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Annotated, Generic, TypeVar

from django.db import transaction

import sentry_sdk
from dependency_injector.wiring import Provide, inject

from payments.constants import PaymentStatuses
from payments.exceptions import PaymentReferenceMismatchError
from payments.models import Payment as PaymentModel
from payments.models import PaymentStatusUpdate as PaymentStatusUpdateModel
from payments.services.dataclasses import PaymentData
from payments.services.payment_adapters.base import BasePaymentAdapter


if TYPE_CHECKING:
    from bookings.models import Booking, EventType
    from bookings.services.booking_service import BookingService


logger = logging.getLogger(__name__)

PaymentAdapter = TypeVar("PaymentAdapter", bound=BasePaymentAdapter)


class PaymentService(Generic[PaymentAdapter]):
    @inject
    def __init__(
        self,
        payment_gateway: Annotated[PaymentAdapter, Provide["payment_gateway"]],
    ):
        self.payment_gateway = payment_gateway

    def _create_payment(
        self, event_type: "EventType", payer_email: str, description: str, meta: dict | None = None
    ) -> PaymentModel:
        payment = PaymentModel.objects.create(
            user_id=event_type.owner_id,
            amount=event_type.price,
            currency=event_type.currency,
            description=description,
            payer_email=payer_email,
            status=PaymentStatuses.PENDING_SEND,
            payment_provider=self.payment_gateway.provider,
            meta=meta or {},
        )
        PaymentStatusUpdateModel.objects.create(
            payment=payment,
            status=PaymentStatuses.PENDING_SEND,
            description="Payment created in the database, will send to payment gateway",
        )
        return payment

    def request_booking_payment(
        self, bookings: Sequence["Booking"], event_type: "EventType", payer_email: str
    ) -> PaymentModel:
        """
        Creates the payment holding the given bookings. Must run inside the booking transaction,
        the gateway is only called after commit through ``send_payment_request``.
        """
        payment = self._create_payment(
            event_type, payer_email, description=f"{event_type.title} ({bookings[0].uid})"
        )
        for booking in bookings:
            booking.payment = payment
            booking.save(update_fields=["payment", "modified"])
        return payment

    def request_seat_payment(
        self, booking: "Booking", event_type: "EventType", payer_email: str
    ) -> PaymentModel:
        # the booking keeps the first payment, seats are tracked through the payment meta
        return self._create_payment(
            event_type,
            payer_email,
            description=f"{event_type.title} seat ({booking.uid})",
            meta={"booking_uid": booking.uid, "attendee_email": payer_email},
        )

    def _serialize_payment(self, payment: PaymentModel) -> PaymentData:
        return PaymentData(
            id=payment.id,
            uid=payment.uid,
            amount=payment.amount,
            currency=payment.currency,
            description=payment.description,
            payer_email=payment.payer_email,
            status=payment.status,
        )

    def send_payment_request(self, payment: PaymentModel) -> PaymentModel:
        """
        Creates the gateway checkout. Gateway failures are logged and the payment stays
        ``pending_send`` so it can be sent again.
        """
        try:
            checkout = self.payment_gateway.create_checkout(self._serialize_payment(payment))
        except Exception as e:  # noqa: BLE001
            logger.exception("Failed to send payment %s to the gateway", payment.uid)
            sentry_sdk.capture_exception(e)
            PaymentStatusUpdateModel.objects.create(
                payment=payment,
                status=PaymentStatuses.PENDING_SEND,
                description=f"Failed to send payment to the gateway: {e}",
            )
            return payment

        payment.external_id = checkout.external_id
        payment.checkout_url = checkout.checkout_url
        payment.status = PaymentStatuses.PENDING
        payment.save(update_fields=["external_id", "checkout_url", "status", "modified"])
        PaymentStatusUpdateModel.objects.create(
            payment=payment,
            status=PaymentStatuses.PENDING,
            description="Checkout created in the payment gateway, waiting for the payer",
            external_id=checkout.external_id,
        )
        return payment

    def get_payment_by_uid(self, uid: str) -> PaymentModel | None:
        return PaymentModel.objects.filter(uid=uid).first()

    @inject
    def receive_payment_update(
        self,
        update_payload: dict,
        payment_uid: str | None = None,
        booking_service: Annotated["BookingService | None", Provide["booking_service"]] = None,
    ) -> PaymentStatusUpdateModel | None:
        """
        Records a gateway notification. The first approval of a booking payment marks its
        bookings as paid.
        """
        status_update = self.payment_gateway.receive_update(update_payload)
        if not status_update:
            return None

        reference = status_update.payment_reference or payment_uid
        if payment_uid and status_update.payment_reference not in (None, payment_uid):
            raise PaymentReferenceMismatchError(
                f"Gateway payment references {status_update.payment_reference}, not {payment_uid}"
            )
        if not reference:
            logger.warning("Payment update without a payment reference: %s", status_update)
            return None

        with transaction.atomic():
            payment = (
                PaymentModel.objects.select_for_update().filter(uid=reference).first()
            )
            if not payment:
                logger.warning("Payment update for unknown payment %s", reference)
                return None

            was_approved = payment.is_approved
            payment.status = status_update.status
            payment.original_status = status_update.original_status
            payment.save(update_fields=["status", "original_status", "modified"])
            status_update_model = PaymentStatusUpdateModel.objects.create(
                payment=payment,
                status=status_update.status,
                description=status_update.description or "",
                external_id=status_update.update_external_id or "",
            )

            if payment.is_approved and not was_approved:
                logger.info("Payment %s approved", payment.uid)
                if booking_service is not None:
                    booking_service.mark_booking_paid(payment)

        return status_update_model

import json
import logging
from abc import abstractmethod

from payments.exceptions import PaymentExternalIdMissingInNotificationError
from payments.services.dataclasses import CheckoutData, PaymentData, PaymentStatusUpdate


logger = logging.getLogger(__name__)


class BasePaymentAdapter:
    provider: str

    class Meta:
        abstract = True

    @abstractmethod
    def create_checkout(self, payment: PaymentData) -> CheckoutData:
        """
        Ask the gateway for a hosted checkout of the payment.
        :param payment: Payment data
        :return: the gateway's id for the checkout and the url the payer is sent to
        """
        raise NotImplementedError

    @abstractmethod
    def check_status(
        self, payment_external_id: str, update_id: str | None = None
    ) -> PaymentStatusUpdate:
        """
        Check the status of a payment.
        :param payment_external_id: the gateway's payment id
        """
        raise NotImplementedError

    @abstractmethod
    def get_payment_external_id_from_update(self, update_payload: dict) -> str | None:
        """
        Get the external ID from a payment status update payload.
        :param update_payload: Payment status update payload
        :return: External ID
        """
        raise NotImplementedError

    def _get_required_payment_external_id_from_update(self, update_payload: dict) -> str:
        payment_external_id = self.get_payment_external_id_from_update(update_payload)
        if not payment_external_id:
            raise PaymentExternalIdMissingInNotificationError()
        return payment_external_id

    @abstractmethod
    def get_update_id(self, update_payload: dict) -> str | None:
        """
        Get the id of the notification itself, used to deduplicate updates.
        :param update_payload: Payment status update payload
        """
        raise NotImplementedError

    def receive_update(self, update_payload: dict) -> PaymentStatusUpdate | None:
        """
        Receive a payment status update. This method is supposed to be called by a webhook.
        The payload is only trusted for ids, the status is read back from the gateway.
        :param update_payload: Payment status update payload
        """
        try:
            payment_external_id = self._get_required_payment_external_id_from_update(
                update_payload
            )
        except PaymentExternalIdMissingInNotificationError:
            logger.error(
                "Payment external id not found in update payload. payload: %s",
                json.dumps(update_payload),
            )
            return None
        return self.check_status(payment_external_id, self.get_update_id(update_payload))

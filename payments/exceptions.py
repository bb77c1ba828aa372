class PaymentError(ValueError):
    """Base exception for payment errors"""

    default_message = ""

    def __init__(self, message: str | None = None):
        if message is None:
            message = self.default_message
        super().__init__(message)


class PaymentAdapterError(PaymentError):
    default_message = "The payment gateway request failed."


class PaymentExternalIdMissingInNotificationError(PaymentAdapterError):
    default_message = "Payment external id not found in update payload"


class PaymentReferenceMismatchError(PaymentError):
    default_message = "The gateway payment references another payment."

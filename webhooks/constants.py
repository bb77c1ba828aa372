from django.db.models import TextChoices
from django.utils.translation import gettext_lazy as _


class WebhookTrigger(TextChoices):
    BOOKING_CREATED = ("BOOKING_CREATED", _("Booking created"))
    BOOKING_REQUESTED = ("BOOKING_REQUESTED", _("Booking requested"))
    BOOKING_RESCHEDULED = ("BOOKING_RESCHEDULED", _("Booking rescheduled"))
    BOOKING_CANCELLED = ("BOOKING_CANCELLED", _("Booking cancelled"))
    BOOKING_REJECTED = ("BOOKING_REJECTED", _("Booking rejected"))


class WebhookDeliveryStatus(TextChoices):
    PENDING = ("pending", _("Pending"))
    DELIVERED = ("delivered", _("Delivered"))
    FAILED = ("failed", _("Failed"))


MAX_DELIVERY_RETRIES = 5
DELIVERY_TIMEOUT_SECONDS = 30

TRIGGER_HEADER = "X-Booking-Trigger"
SIGNATURE_HEADER = "X-Booking-Signature-256"

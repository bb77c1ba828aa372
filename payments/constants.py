from django.db.models import TextChoices
from django.utils.translation import gettext as _


class PaymentProviders(TextChoices):
    MERCADOPAGO = ("mercadopago", "MercadoPago")


class PaymentStatuses(TextChoices):
    PENDING_SEND = ("pending_send", _("Pending send"))
    PENDING = ("pending", _("Pending"))
    APPROVED = ("approved", _("Approved"))
    REJECTED = ("rejected", _("Rejected"))
    CANCELLED = ("cancelled", _("Cancelled"))
    REFUNDED = ("refunded", _("Refunded"))
    CHARGED_BACK = ("charged_back", _("Charged back"))
    IN_PROCESS = ("in_process", _("In process"))
    IN_MEDIATION = ("in_mediation", _("In mediation"))
    EXPIRED = ("expired", _("Expired"))
    UNKNOWN = ("unknown", _("Unknown"))
    ERROR = ("error", _("Error"))


import django_virtual_models as v

from payments.models import Payment


class PaymentVirtualModel(v.VirtualModel):
    class Meta:
        model = Payment

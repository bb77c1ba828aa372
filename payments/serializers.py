from rest_framework import serializers

from common.utils.serializer_utils import VirtualModelSerializer
from payments.models import Payment
from payments.virtual_models import PaymentVirtualModel


class PaymentSerializer(VirtualModelSerializer):
    class Meta:
        model = Payment
        virtual_model = PaymentVirtualModel
        fields = (
            "uid",
            "amount",
            "currency",
            "status",
            "checkout_url",
        )
        read_only_fields = fields


class PaymentSummarySerializer(serializers.Serializer):
    """Payment block of a booking response, built from the in-memory instance."""

    uid = serializers.CharField()
    amount = serializers.IntegerField()
    currency = serializers.CharField()
    status = serializers.CharField()
    checkout_url = serializers.CharField()

from typing import TYPE_CHECKING, Annotated

from dependency_injector.wiring import Provide, inject
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.viewsets import ViewSet

from payments.exceptions import PaymentReferenceMismatchError


if TYPE_CHECKING:
    from payments.services.payment_service import PaymentService


class PaymentsViewSet(ViewSet):
    lookup_field = "uid"
    permission_classes = (AllowAny,)
    authentication_classes = ()

    @extend_schema(
        summary="Receive payment updates",
        description="This endpoint is used to receive payment updates from MercadoPago.",
        request=None,
        responses={
            200: {"description": "Payment update received."},
            400: {"description": "The update references another payment."},
        },
    )
    @action(
        methods=["post"],
        detail=True,
        url_path="payment-update",
        url_name="payment-update",
    )
    @inject
    def payment_update(
        self,
        request,
        uid=None,
        payment_service: Annotated["PaymentService", Provide["payment_service"]] = None,
    ):
        """
        Handle payment updates. The gateway is acknowledged even for unknown payments so it
        stops retrying.
        """
        try:
            payment_service.receive_payment_update(request.data, payment_uid=uid)
        except PaymentReferenceMismatchError as e:
            return Response({"message": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({"message": "Payment update received."})

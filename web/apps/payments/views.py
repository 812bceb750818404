"""HTTP views for the payments app.

Views validate the body with Pydantic, delegate to ``PaymentService``
obtained from ``providers.get_payment_service()`` and translate domain
errors with ``gateway.errors.error_response``. Gateway failures surface as
HTTP 500 ``UPSTREAM_GATEWAY_ERROR``.
"""

from pydantic import ValidationError as PydanticValidationError
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.orders.errors import StorefrontError
from apps.orders.schemas import OrderReadDTO
from gateway.authentication import IsStaff
from gateway.errors import error_response, internal_error_response, validation_response

from . import providers
from .schemas import CreatePaymentOrderDTO, RefundDTO, VerifyPaymentDTO


class _PaymentsView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payments"


class CreatePaymentOrderView(_PaymentsView):
    def post(self, request):
        try:
            dto = CreatePaymentOrderDTO.model_validate(request.data)
        except PydanticValidationError as e:
            return validation_response(e)
        try:
            order = providers.get_payment_service().create_payment_order(
                dto.amount, dto.currency, dto.receipt, dto.notes
            )
        except StorefrontError as e:
            return error_response(e)
        except Exception:
            return internal_error_response()
        return Response({"order": order}, status=200)


class VerifyPaymentView(_PaymentsView):
    def post(self, request):
        try:
            dto = VerifyPaymentDTO.model_validate(request.data)
        except PydanticValidationError as e:
            return validation_response(e)
        try:
            order = providers.get_payment_service().verify_payment(
                dto.razorpay_order_id, dto.razorpay_payment_id, dto.razorpay_signature, str(dto.order_id)
            )
        except StorefrontError as e:
            return error_response(e)
        except Exception:
            return internal_error_response()
        return Response(
            {
                "message": "Payment verified successfully",
                "order": {"id": order.id, "orderId": order.order_id, "status": order.status.value},
            },
            status=200,
        )


class PaymentDetailView(_PaymentsView):
    permission_classes = [IsStaff]

    def get(self, request, payment_id: str):
        try:
            payment = providers.get_payment_service().fetch_payment(payment_id)
        except StorefrontError as e:
            return error_response(e)
        except Exception:
            return internal_error_response()
        return Response({"payment": payment}, status=200)


class RefundView(_PaymentsView):
    permission_classes = [IsStaff]

    def post(self, request):
        try:
            dto = RefundDTO.model_validate(request.data)
        except PydanticValidationError as e:
            return validation_response(e)
        try:
            refund, order = providers.get_payment_service().refund_payment(dto.payment_id, dto.amount, dto.notes)
        except StorefrontError as e:
            return error_response(e)
        except Exception:
            return internal_error_response()
        return Response(
            {
                "message": "Refund processed successfully",
                "refund": refund,
                "order": OrderReadDTO.from_order(order).to_json() if order else None,
            },
            status=200,
        )

from django.urls import path
from .views import CreatePaymentOrderView, VerifyPaymentView, RefundView, PaymentDetailView
app_name = "payments"

urlpatterns = [
    path("create-order/", CreatePaymentOrderView.as_view(), name="payments-create-order"),
    path("verify-payment/", VerifyPaymentView.as_view(), name="payments-verify"),
    path("refund/", RefundView.as_view(), name="payments-refund"),
    path("<str:payment_id>/", PaymentDetailView.as_view(), name="payments-detail"),
]

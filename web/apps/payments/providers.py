"""Service provider helpers for wiring PaymentService with its gateway.

``get_payment_service`` returns a service using the Razorpay HTTP client
when ``settings.USE_HTTP_ADAPTERS`` is truthy, and the in-process
``GatewayStub`` otherwise (tests, local development).
"""

from django.conf import settings

from apps.orders.providers import get_order_service

from .adapters import GatewayStub
from .domain import PaymentService
from .http_adapters import HttpRazorpayClient


def get_payment_service() -> PaymentService:
    """Return a configured PaymentService instance."""
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        gateway = HttpRazorpayClient()
    else:
        gateway = GatewayStub()
    return PaymentService(
        gateway=gateway,
        orders=get_order_service(),
        secret=settings.RAZORPAY_KEY_SECRET,
    )

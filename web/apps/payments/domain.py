"""Payment verification, gateway port and payment service.

The gateway (Razorpay) signs ``"<gateway_order_id>|<gateway_payment_id>"``
with HMAC-SHA256 keyed by the merchant secret. ``PaymentService`` checks
that signature in constant time and, on success, hands the order to
``OrderService.record_payment`` which confirms it.
"""

import hashlib
import hmac
import logging
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Protocol

from apps.orders.domain import (
    Order,
    OrderService,
    OrderStatus,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
)
from apps.orders.errors import SignatureMismatch, ValidationError

logger = logging.getLogger("payments")

DEFAULT_CURRENCY = "INR"


def compute_signature(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    """Hex HMAC-SHA256 of ``"<order_id>|<payment_id>"`` keyed with ``secret``."""
    message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signature_matches(secret: str, gateway_order_id: str, gateway_payment_id: str, supplied: str) -> bool:
    expected = compute_signature(secret, gateway_order_id, gateway_payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), (supplied or "").encode("utf-8"))


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount (rupees) to minor units (paise), half-up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ---- Ports (DIP) ----
class GatewayPort(Protocol):
    """Port describing the payment gateway operations used by the domain.

    Implementations raise ``UpstreamGatewayError`` when the gateway fails,
    times out or answers with an unexpected status.
    """

    def create_order(self, amount_minor: int, currency: str, receipt: str, notes: dict) -> dict:
        raise NotImplementedError()

    def fetch_payment(self, payment_id: str) -> dict:
        raise NotImplementedError()

    def refund(self, payment_id: str, amount_minor: Optional[int], notes: dict) -> dict:
        raise NotImplementedError()


# ---- Domain service ----
class PaymentService:
    """Creates gateway payment intents, verifies payments and issues refunds."""

    def __init__(self, gateway: GatewayPort, orders: OrderService, secret: str):
        self.gateway = gateway
        self.orders = orders
        self._secret = secret

    def create_payment_order(
        self,
        amount: Decimal,
        currency: str = DEFAULT_CURRENCY,
        receipt: Optional[str] = None,
        notes: Optional[dict] = None,
    ) -> dict:
        """Create a gateway-side payment intent for ``amount``.

        Raises:
            ValidationError: If ``amount`` is not positive.
            UpstreamGatewayError: If the gateway call fails.
        """
        if amount is None or Decimal(amount) <= 0:
            raise ValidationError(
                "Valid amount is required", errors=[{"field": "amount", "message": "Must be greater than 0"}]
            )
        created = self.gateway.create_order(
            amount_minor=to_minor_units(amount),
            currency=currency or DEFAULT_CURRENCY,
            receipt=receipt or f"receipt_{int(time.time() * 1000)}",
            notes=notes or {},
        )
        return {
            "id": created.get("id"),
            "amount": created.get("amount"),
            "currency": created.get("currency"),
            "receipt": created.get("receipt"),
        }

    def verify_payment(
        self, gateway_order_id: str, gateway_payment_id: str, signature: str, order_pk: str
    ) -> Order:
        """Check the gateway signature and confirm the order.

        Verifying the same payment twice returns the already confirmed order
        without appending another history entry.

        Raises:
            SignatureMismatch: If the signature does not match; the order is
                not touched.
            OrderNotFound: If ``order_pk`` does not exist.
            OrderNotPayable: If the order was cancelled or refunded before
                the payment arrived.
        """
        if not signature_matches(self._secret, gateway_order_id, gateway_payment_id, signature):
            logger.warning("payment signature mismatch", extra={"gateway_order_id": gateway_order_id})
            raise SignatureMismatch("Payment verification failed")

        confirmed = self.orders.record_payment(
            order_pk,
            PaymentRecord(
                method=PaymentMethod.GATEWAY,
                status=PaymentStatus.COMPLETED,
                transaction_id=gateway_payment_id,
                gateway_order_id=gateway_order_id,
                gateway_payment_id=gateway_payment_id,
                gateway_signature=signature,
            ),
        )
        logger.info("payment verified", extra={"order_id": confirmed.order_id, "gateway_payment_id": gateway_payment_id})
        return confirmed

    def fetch_payment(self, payment_id: str) -> dict:
        return self.gateway.fetch_payment(payment_id)

    def refund_payment(
        self, payment_id: str, amount: Optional[Decimal] = None, notes: Optional[dict] = None
    ) -> tuple[dict, Optional[Order]]:
        """Refund a payment at the gateway and flag the local order.

        When no local order carries ``payment_id`` the refund still stands;
        the inconsistency is logged for monitoring.

        Returns:
            tuple[dict, Order | None]: Gateway refund payload and the
            refunded order, if one was found.
        """
        if amount is not None and Decimal(amount) <= 0:
            raise ValidationError(
                "Refund amount must be positive", errors=[{"field": "amount", "message": "Must be greater than 0"}]
            )
        refund = self.gateway.refund(
            payment_id,
            to_minor_units(amount) if amount is not None else None,
            notes or {},
        )
        order = self.orders.mark_refunded(payment_id, str(refund.get("id")))
        if order is None:
            logger.warning(
                "refund issued for unknown payment",
                extra={"gateway_payment_id": payment_id, "refund_id": refund.get("id")},
            )
        else:
            logger.info("payment refunded", extra={"order_id": order.order_id, "status": OrderStatus.REFUNDED.value})
        return refund, order

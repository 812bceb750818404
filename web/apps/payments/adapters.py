"""In-process stub adapter for the payment gateway port.

``GatewayStub`` implements ``GatewayPort`` without any network calls. It is
intended for unit tests and local development where deterministic
behavior is useful and the real gateway is not reachable.
"""

import uuid
from typing import Optional

from .domain import GatewayPort


def _gateway_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:14]}"


class GatewayStub(GatewayPort):
    """Stub implementation of ``GatewayPort``.

    Payment intents are created for any amount, payments always read back
    as captured and refunds always succeed.
    """

    def create_order(self, amount_minor: int, currency: str, receipt: str, notes: dict) -> dict:
        return {
            "id": _gateway_id("order"),
            "entity": "order",
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
            "status": "created",
        }

    def fetch_payment(self, payment_id: str) -> dict:
        return {"id": payment_id, "entity": "payment", "status": "captured"}

    def refund(self, payment_id: str, amount_minor: Optional[int], notes: dict) -> dict:
        return {
            "id": _gateway_id("rfnd"),
            "entity": "refund",
            "payment_id": payment_id,
            "amount": amount_minor,
            "notes": notes,
            "status": "processed",
        }

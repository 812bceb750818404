"""Service provider helpers for wiring OrderService with its ports.

Views never build services themselves: they call ``get_order_service`` so
tests can monkeypatch the factory and inject fakes.
"""

from .domain import OrderService
from .inventory import ProductInventory
from .repository import OrderRepository


def get_order_service() -> OrderService:
    """Return an OrderService backed by the catalog table and the ORM repository."""
    return OrderService(
        inventory=ProductInventory(),
        orders=OrderRepository(),
    )

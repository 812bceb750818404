"""Inventory reservation on top of the catalog ``Product`` table.

Stock is never read-then-written from Python: ``reserve`` issues a single
conditional ``UPDATE ... WHERE stock >= quantity`` so two concurrent orders
for the last units cannot both succeed and stock cannot go negative.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import F

from apps.catalog.models import Product

from .domain import InventoryPort, ProductSnapshot
from .errors import InsufficientStock, ProductNotFound

logger = logging.getLogger("orders.inventory")


class ProductInventory(InventoryPort):
    """Django ORM implementation of ``InventoryPort``."""

    def get_product(self, product_id: str) -> ProductSnapshot:
        try:
            prod = Product.objects.get(pk=product_id, is_active=True)
        except (Product.DoesNotExist, DjangoValidationError, ValueError):
            raise ProductNotFound(f"Product not found: {product_id}") from None
        return ProductSnapshot(
            id=str(prod.pk),
            name=prod.name,
            price=prod.price,
            image=prod.image,
            stock=prod.stock,
        )

    def reserve(self, product_id: str, quantity: int) -> None:
        """Atomically decrement stock when enough units are available.

        Raises:
            InsufficientStock: When fewer than ``quantity`` units remain.
            ProductNotFound: When the product row no longer exists.
        """
        updated = Product.objects.filter(pk=product_id, stock__gte=quantity).update(
            stock=F("stock") - quantity
        )
        if updated:
            return
        prod = Product.objects.filter(pk=product_id).only("name").first()
        if prod is None:
            raise ProductNotFound(f"Product not found: {product_id}")
        raise InsufficientStock(f"Insufficient stock for: {prod.name}")

    def release(self, product_id: str, quantity: int) -> None:
        updated = Product.objects.filter(pk=product_id).update(stock=F("stock") + quantity)
        if not updated:
            logger.warning("release for unknown product", extra={"product_id": product_id, "quantity": quantity})

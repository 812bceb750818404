"""Repository layer for persisting orders.

This module implements ``OrderStorePort`` with the Django ORM so the domain
layer is not coupled to ORM details. Rows are mapped to and from the
``Order`` dataclass. The status history is append-only: ``save`` inserts
the entries recorded on the loaded copy and refuses to write over a row
that was saved after that copy was read.
"""

from dataclasses import asdict
from typing import List, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .domain import (
    CustomerInfo,
    Order,
    OrderItem,
    OrderStatus,
    OrderStorePort,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    ShippingAddress,
    StatusEntry,
    Tracking,
)
from .errors import ConcurrentUpdate, DuplicateOrderId, OrderNotFound, PersistenceError
from .models import OrderItemModel, OrderModel, OrderStatusEntryModel


def _base_qs():
    return OrderModel.objects.prefetch_related("items", "status_history")


def _mutable_fields(order: Order) -> dict:
    tracking = order.tracking or Tracking()
    return {
        "status": order.status.value,
        "total_amount": order.total_amount,
        "shipping_amount": order.shipping_amount,
        "discount_amount": order.discount_amount,
        "final_amount": order.final_amount,
        "payment_method": order.payment.method.value,
        "payment_status": order.payment.status.value,
        "transaction_id": order.payment.transaction_id,
        "gateway_order_id": order.payment.gateway_order_id,
        "gateway_payment_id": order.payment.gateway_payment_id,
        "gateway_signature": order.payment.gateway_signature,
        "tracking_carrier": tracking.carrier,
        "tracking_number": tracking.tracking_number,
        "tracking_url": tracking.tracking_url,
        "notes": order.notes,
        "stock_released": order.stock_released,
    }


def _history_rows(order_pk, entries: List[StatusEntry]) -> list[OrderStatusEntryModel]:
    return [
        OrderStatusEntryModel(order_id=order_pk, status=e.status.value, note=e.note, timestamp=e.timestamp)
        for e in entries
    ]


def to_domain(obj: OrderModel) -> Order:
    """Map an ``OrderModel`` (with prefetched relations) to an ``Order``."""
    tracking = None
    if obj.tracking_carrier or obj.tracking_number or obj.tracking_url:
        tracking = Tracking(obj.tracking_carrier, obj.tracking_number, obj.tracking_url)
    return Order(
        id=str(obj.id),
        order_id=obj.order_id,
        customer=CustomerInfo(
            name=obj.customer_name,
            email=obj.customer_email,
            phone=obj.customer_phone,
            user_id=obj.customer_user_id,
        ),
        items=[
            OrderItem(
                product_id=str(it.product_id) if it.product_id else None,
                name=it.name,
                price=it.price,
                quantity=it.quantity,
                image=it.image,
            )
            for it in obj.items.all()
        ],
        total_amount=obj.total_amount,
        shipping_amount=obj.shipping_amount,
        discount_amount=obj.discount_amount,
        status=OrderStatus(obj.status),
        status_history=[
            StatusEntry(status=OrderStatus(h.status), timestamp=h.timestamp, note=h.note)
            for h in obj.status_history.all()
        ],
        shipping_address=ShippingAddress(**obj.shipping_address) if obj.shipping_address else None,
        payment=PaymentRecord(
            method=PaymentMethod(obj.payment_method),
            status=PaymentStatus(obj.payment_status),
            transaction_id=obj.transaction_id,
            gateway_order_id=obj.gateway_order_id,
            gateway_payment_id=obj.gateway_payment_id,
            gateway_signature=obj.gateway_signature,
        ),
        tracking=tracking,
        notes=obj.notes,
        stock_released=obj.stock_released,
        version=obj.version,
        created_at=obj.created_at,
        updated_at=obj.updated_at,
    )


class OrderRepository(OrderStorePort):
    """Repository that persists Order domain objects using Django ORM."""

    def add(self, order: Order) -> Order:
        """Insert the order, its line items and its seeded history.

        The insert runs in its own savepoint so a unique violation on
        ``order_id`` only rolls back this attempt.

        Raises:
            DuplicateOrderId: When ``order.order_id`` is already taken.
            PersistenceError: For any other database failure.
        """
        try:
            with transaction.atomic():
                obj = OrderModel.objects.create(
                    order_id=order.order_id,
                    customer_name=order.customer.name,
                    customer_email=order.customer.email,
                    customer_phone=order.customer.phone,
                    customer_user_id=order.customer.user_id,
                    shipping_address=asdict(order.shipping_address) if order.shipping_address else None,
                    **_mutable_fields(order),
                )
                OrderItemModel.objects.bulk_create(
                    [
                        OrderItemModel(
                            order=obj,
                            product_id=it.product_id,
                            position=pos,
                            name=it.name,
                            price=it.price,
                            quantity=it.quantity,
                            image=it.image,
                        )
                        for pos, it in enumerate(order.items)
                    ]
                )
                OrderStatusEntryModel.objects.bulk_create(_history_rows(obj.pk, order.status_history))
        except IntegrityError as e:
            if OrderModel.objects.filter(order_id=order.order_id).exists():
                raise DuplicateOrderId(f"Order id already exists: {order.order_id}") from e
            raise PersistenceError("Failed to store order") from e
        except DatabaseError as e:
            raise PersistenceError("Failed to store order") from e
        return self.get(str(obj.pk))

    def get(self, pk: str) -> Optional[Order]:
        try:
            obj = _base_qs().filter(pk=pk).first()
        except (DjangoValidationError, ValueError):
            return None
        return to_domain(obj) if obj else None

    def get_by_order_id(self, order_id: str) -> Optional[Order]:
        obj = _base_qs().filter(order_id=order_id).first()
        return to_domain(obj) if obj else None

    def get_by_gateway_payment_id(self, payment_id: str) -> Optional[Order]:
        obj = _base_qs().filter(gateway_payment_id=payment_id).order_by("-created_at").first()
        return to_domain(obj) if obj else None

    def list_by_customer(self, email: str, offset: int, limit: int) -> tuple[List[Order], int]:
        qs = _base_qs().filter(customer_email=email).order_by("-created_at")
        total = qs.count()
        return [to_domain(o) for o in qs[offset:offset + limit]], total

    def save(self, order: Order) -> Order:
        """Persist mutable fields and append the history recorded since load.

        The update only matches the row while its ``version`` equals
        ``order.version``; a successful save bumps it.

        Raises:
            ConcurrentUpdate: The row was saved by someone else after
                ``order`` was loaded. Nothing is written.
            OrderNotFound: When the order row no longer exists.
        """
        with transaction.atomic():
            updated = OrderModel.objects.filter(pk=order.id, version=order.version).update(
                updated_at=timezone.now(), version=F("version") + 1, **_mutable_fields(order)
            )
            if not updated:
                if OrderModel.objects.filter(pk=order.id).exists():
                    raise ConcurrentUpdate(f"Order {order.order_id} changed since it was loaded")
                raise OrderNotFound("Order not found")
            OrderStatusEntryModel.objects.bulk_create(_history_rows(order.id, order.unsaved_history))
        return self.get(order.id)

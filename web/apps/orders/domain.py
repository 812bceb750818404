"""Domain models, ports and service for the order lifecycle.

This module contains the dataclasses that describe an order and its
snapshots, protocol definitions (ports) for the inventory and the order
store, and the domain service that places, transitions and cancels orders.
It has no Django dependency: adapters in ``inventory.py`` and
``repository.py`` implement the ports on top of the ORM.
"""

import logging
import math
import secrets
import string
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional, Protocol

from .errors import (
    ConcurrentUpdate,
    DuplicateOrderId,
    InsufficientStock,
    InvalidStatus,
    OrderNotCancellable,
    OrderNotFound,
    OrderNotPayable,
    ValidationError,
)

logger = logging.getLogger("orders")

SHIPPING_AMOUNT = Decimal("5.00")
ORDER_ID_PREFIX = "NJ"
ORDER_ID_SUFFIX_LEN = 5
MAX_ORDER_ID_ATTEMPTS = 5
MAX_UPDATE_ATTEMPTS = 3
MAX_PAGE_SIZE = 100

_BASE36 = string.digits + string.ascii_uppercase


# ---- Enums ----
class OrderStatus(str, Enum):
    """Enumeration of the statuses an order can hold."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    GATEWAY = "razorpay"
    CASH_ON_DELIVERY = "cod"
    CARD = "card"
    UPI = "upi"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})
UNPAYABLE_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """Decide whether ``current`` may move to ``new``.

    Every enumerated status is reachable from every other one. Callers go
    through this function so a stricter transition table only has to be
    introduced here.
    """
    return isinstance(current, OrderStatus) and isinstance(new, OrderStatus)


def parse_status(value) -> OrderStatus:
    """Map a raw status value to ``OrderStatus``.

    Raises:
        InvalidStatus: When the value is not one of the enumerated statuses.
    """
    try:
        return OrderStatus(value)
    except (ValueError, TypeError):
        raise InvalidStatus(f"Invalid status: {value!r}") from None


def generate_order_id(now_ms: int | None = None) -> str:
    """Build a human-facing order id.

    Format: ``"NJ" + <millisecond timestamp> + <5 uppercase base-36 chars>``.
    """
    ms = int(time.time() * 1000) if now_ms is None else now_ms
    suffix = "".join(secrets.choice(_BASE36) for _ in range(ORDER_ID_SUFFIX_LEN))
    return f"{ORDER_ID_PREFIX}{ms}{suffix}"


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class LineItemRequest:
    """A product reference and the quantity the customer asked for."""

    product_id: str
    quantity: int


@dataclass(frozen=True)
class ProductSnapshot:
    """Catalog view of a product at the moment it is read."""

    id: str
    name: str
    price: Decimal
    image: str
    stock: int


@dataclass(frozen=True)
class OrderItem:
    """A line item with the name, price and image captured at order time.

    ``product_id`` may be None when the referenced product was removed from
    the catalog after the order was placed.
    """

    product_id: Optional[str]
    name: str
    price: Decimal
    quantity: int
    image: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    email: str
    phone: Optional[str] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class ShippingAddress:
    full_name: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str = "India"
    phone: Optional[str] = None


@dataclass(frozen=True)
class StatusEntry:
    status: OrderStatus
    timestamp: datetime
    note: str


@dataclass(frozen=True)
class PaymentRecord:
    """Payment sub-record embedded in an order."""

    method: PaymentMethod = PaymentMethod.GATEWAY
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: Optional[str] = None
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    gateway_signature: Optional[str] = None


@dataclass(frozen=True)
class Tracking:
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None


@dataclass
class Order:
    """Container for order data.

    Attributes:
        id: Storage identity, or None if not yet saved.
        order_id: Human-facing identifier, assigned once before the first
            save and never changed afterwards.
        items: Line items in the order they were requested.
        total_amount: Sum of the line totals.
        status_history: Append-only log; ``record_status`` is the only
            writer.
        stock_released: True once the reserved quantities went back to the
            catalog, so a second cancellation cannot restore them again.
        version: Stored revision the order was loaded at; a save only
            succeeds if the stored row is still at this revision.
        unsaved_history: Entries recorded since the order was loaded, the
            ones the next save has to insert.
    """

    id: Optional[str]
    order_id: str
    customer: CustomerInfo
    items: List[OrderItem]
    total_amount: Decimal
    shipping_amount: Decimal = SHIPPING_AMOUNT
    discount_amount: Decimal = Decimal("0")
    status: OrderStatus = OrderStatus.PENDING
    status_history: List[StatusEntry] = field(default_factory=list)
    shipping_address: Optional[ShippingAddress] = None
    payment: PaymentRecord = field(default_factory=PaymentRecord)
    tracking: Optional[Tracking] = None
    notes: str = ""
    stock_released: bool = False
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    unsaved_history: List[StatusEntry] = field(default_factory=list, repr=False, compare=False)

    @property
    def final_amount(self) -> Decimal:
        return self.total_amount + self.shipping_amount - self.discount_amount

    def record_status(self, status: OrderStatus, note: str, at: datetime) -> None:
        entry = StatusEntry(status=status, timestamp=at, note=note)
        self.status = status
        self.status_history.append(entry)
        self.unsaved_history.append(entry)


@dataclass
class OrderPage:
    orders: List[Order]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


# ---- Ports (DIP) ----
class InventoryPort(Protocol):
    """Port describing stock operations used by the domain."""

    def get_product(self, product_id: str) -> ProductSnapshot:
        """Return the current catalog snapshot.

        Raises:
            ProductNotFound: If the product does not exist or is inactive.
        """
        raise NotImplementedError()

    def reserve(self, product_id: str, quantity: int) -> None:
        """Decrement stock if, and only if, enough units are available.

        Raises:
            InsufficientStock: If ``quantity`` exceeds the current stock.
            ProductNotFound: If the product disappeared.
        """
        raise NotImplementedError()

    def release(self, product_id: str, quantity: int) -> None:
        """Give ``quantity`` units back to the product."""
        raise NotImplementedError()


class OrderStorePort(Protocol):
    """Port describing order persistence used by the domain."""

    def add(self, order: Order) -> Order:
        """Insert a new order. Raises ``DuplicateOrderId`` on id collision."""
        raise NotImplementedError()

    def get(self, pk: str) -> Optional[Order]:
        raise NotImplementedError()

    def get_by_order_id(self, order_id: str) -> Optional[Order]:
        raise NotImplementedError()

    def get_by_gateway_payment_id(self, payment_id: str) -> Optional[Order]:
        raise NotImplementedError()

    def list_by_customer(self, email: str, offset: int, limit: int) -> tuple[List[Order], int]:
        raise NotImplementedError()

    def save(self, order: Order) -> Order:
        """Persist mutable fields and ``order.unsaved_history``.

        The write is conditional on ``order.version`` still being the
        stored revision.

        Raises:
            ConcurrentUpdate: The order changed after it was loaded.
            OrderNotFound: The order no longer exists.
        """
        raise NotImplementedError()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---- Domain service ----
class OrderService:
    """Domain service responsible for the order lifecycle.

    Placement reserves stock item by item and keeps a compensation list: if
    anything fails after the first reservation, every unit reserved so far
    is released before the error propagates.
    """

    def __init__(
        self,
        inventory: InventoryPort,
        orders: OrderStorePort,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = generate_order_id,
    ):
        self.inventory = inventory
        self.orders = orders
        self._clock = clock
        self._id_factory = id_factory

    # -- placement --
    def place_order(
        self,
        customer: CustomerInfo,
        items: List[LineItemRequest],
        shipping_address: Optional[ShippingAddress] = None,
        payment_method: PaymentMethod = PaymentMethod.GATEWAY,
        notes: str = "",
    ) -> Order:
        """Validate, reserve stock and persist a new ``pending`` order.

        Raises:
            ValidationError: Missing customer data, no items, quantity < 1.
            ProductNotFound: A referenced product does not exist.
            InsufficientStock: A quantity exceeds the available stock.
            DuplicateOrderId: No unique order id after several attempts.
        """
        _validate_placement(customer, items)

        reserved: list[tuple[str, int]] = []
        try:
            order_items = []
            for req in items:
                product = self.inventory.get_product(req.product_id)
                if req.quantity > product.stock:
                    raise InsufficientStock(f"Insufficient stock for: {product.name}")
                self.inventory.reserve(product.id, req.quantity)
                reserved.append((product.id, req.quantity))
                order_items.append(
                    OrderItem(
                        product_id=product.id,
                        name=product.name,
                        price=product.price,
                        quantity=req.quantity,
                        image=product.image,
                    )
                )

            order = Order(
                id=None,
                order_id="",
                customer=customer,
                items=order_items,
                total_amount=sum((it.line_total for it in order_items), Decimal("0")),
                shipping_address=shipping_address,
                payment=PaymentRecord(method=PaymentMethod(payment_method)),
                notes=notes or "",
            )
            order.record_status(OrderStatus.PENDING, "Order placed", self._clock())
            saved = self._insert_with_fresh_id(order)
        except Exception:
            self._release_all(reserved)
            raise

        logger.info(
            "order placed",
            extra={"order_id": saved.order_id, "items": len(saved.items), "final_amount": str(saved.final_amount)},
        )
        return saved

    def _insert_with_fresh_id(self, order: Order) -> Order:
        for attempt in range(1, MAX_ORDER_ID_ATTEMPTS + 1):
            order.order_id = self._id_factory()
            try:
                return self.orders.add(order)
            except DuplicateOrderId:
                logger.warning("order id collision", extra={"order_id": order.order_id, "attempt": attempt})
        raise DuplicateOrderId("Could not allocate a unique order id")

    def _release_all(self, reserved: list[tuple[str, int]]) -> None:
        for product_id, quantity in reversed(reserved):
            try:
                self.inventory.release(product_id, quantity)
            except Exception:
                logger.exception("stock release failed", extra={"product_id": product_id, "quantity": quantity})

    # -- reads --
    def get_order(self, pk: str) -> Order:
        order = self.orders.get(pk)
        if order is None:
            raise OrderNotFound("Order not found")
        return order

    def track_order(self, human_order_id: str) -> Order:
        order = self.orders.get_by_order_id((human_order_id or "").strip().upper())
        if order is None:
            raise OrderNotFound("Order not found. Please check your order ID.")
        return order

    def list_orders_by_customer(self, email: str, page: int = 1, page_size: int = 10) -> OrderPage:
        if page < 1 or page_size < 1:
            raise ValidationError(
                "page and limit must be positive integers",
                errors=[{"field": "page" if page < 1 else "limit", "message": "Must be a positive integer"}],
            )
        page_size = min(page_size, MAX_PAGE_SIZE)
        orders, total = self.orders.list_by_customer(
            (email or "").strip().lower(), (page - 1) * page_size, page_size
        )
        return OrderPage(orders=orders, total=total, page=page, page_size=page_size)

    # -- transitions --
    def _update(self, pk: str, apply: Callable[[Order], bool]) -> Order:
        """Load, mutate and save an order, reloading when it changed meanwhile.

        ``apply`` mutates the freshly loaded order and returns False when
        there is nothing to save. Domain errors it raises propagate.

        Raises:
            ConcurrentUpdate: The order kept changing for every attempt.
        """
        for attempt in range(1, MAX_UPDATE_ATTEMPTS + 1):
            order = self.get_order(pk)
            if not apply(order):
                return order
            try:
                return self.orders.save(order)
            except ConcurrentUpdate:
                logger.warning("order changed concurrently", extra={"order_id": order.order_id, "attempt": attempt})
        raise ConcurrentUpdate("Order was modified concurrently, please retry")

    def change_status(self, pk: str, new_status, note: Optional[str] = None) -> Order:
        """Move an order to ``new_status`` and append a history entry.

        The status is validated before the order is loaded, so an invalid
        value never touches the store.
        """
        status = parse_status(new_status)

        def apply(order: Order) -> bool:
            if not can_transition(order.status, status):
                raise InvalidStatus(f"Cannot move order from {order.status.value} to {status.value}")
            order.record_status(status, note or f"Order status changed to {status.value}", self._clock())
            return True

        saved = self._update(pk, apply)
        logger.info("order status changed", extra={"order_id": saved.order_id, "status": status.value})
        return saved

    def cancel_order(self, pk: str) -> Order:
        """Cancel a pending or confirmed order and return its stock.

        Stock goes back only after the cancellation is stored, so of two
        concurrent cancels only the one whose save wins releases it.
        """
        to_release: list[tuple[str, int]] = []

        def apply(order: Order) -> bool:
            if order.status not in CANCELLABLE_STATUSES:
                raise OrderNotCancellable("Order cannot be cancelled at this stage")
            to_release.clear()
            if not order.stock_released:
                to_release.extend((i.product_id, i.quantity) for i in order.items if i.product_id is not None)
                order.stock_released = True
            order.record_status(OrderStatus.CANCELLED, "Order cancelled by customer", self._clock())
            return True

        saved = self._update(pk, apply)
        for product_id, quantity in to_release:
            self.inventory.release(product_id, quantity)
        logger.info("order cancelled", extra={"order_id": saved.order_id, "released": len(to_release)})
        return saved

    def record_payment(
        self, pk: str, payment: PaymentRecord, note: str = "Payment completed successfully"
    ) -> Order:
        """Attach a completed payment and confirm the order.

        Recording the same gateway payment again returns the order as it is.

        Raises:
            OrderNotPayable: The order was cancelled or refunded; its stock
                may already be back in the catalog.
        """

        def apply(order: Order) -> bool:
            if (
                order.payment.status == PaymentStatus.COMPLETED
                and order.payment.gateway_payment_id == payment.gateway_payment_id
            ):
                logger.info("payment already recorded", extra={"order_id": order.order_id})
                return False
            if order.status in UNPAYABLE_STATUSES:
                logger.warning(
                    "payment for closed order",
                    extra={
                        "order_id": order.order_id,
                        "status": order.status.value,
                        "gateway_payment_id": payment.gateway_payment_id,
                    },
                )
                raise OrderNotPayable(f"Order is {order.status.value} and cannot accept a payment")
            order.payment = payment
            order.record_status(OrderStatus.CONFIRMED, note, self._clock())
            return True

        return self._update(pk, apply)

    def mark_refunded(self, gateway_payment_id: str, refund_id: str) -> Optional[Order]:
        """Flag the order paid with ``gateway_payment_id`` as refunded.

        Returns:
            The updated order, or None when no order carries that payment.
        """
        found = self.orders.get_by_gateway_payment_id(gateway_payment_id)
        if found is None:
            return None

        def apply(order: Order) -> bool:
            order.payment = replace(order.payment, status=PaymentStatus.REFUNDED)
            order.record_status(OrderStatus.REFUNDED, f"Payment refunded: {refund_id}", self._clock())
            return True

        return self._update(found.id, apply)


def _validate_placement(customer: CustomerInfo, items: List[LineItemRequest]) -> None:
    errors = []
    if not customer.name or not customer.name.strip():
        errors.append({"field": "customer.name", "message": "Customer name is required"})
    if not customer.email or "@" not in customer.email:
        errors.append({"field": "customer.email", "message": "Valid email is required"})
    if not items:
        errors.append({"field": "items", "message": "At least one item is required"})
    for idx, it in enumerate(items or []):
        if it.quantity < 1:
            errors.append({"field": f"items.{idx}.quantity", "message": "Quantity must be at least 1"})
    if errors:
        raise ValidationError("Invalid order request", errors=errors)

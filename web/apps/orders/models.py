import uuid
from decimal import Decimal
from django.db import models


class OrderModel(models.Model):
    # UUID PK exposed in the API
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Human-facing id (NJ<ms><5 base-36>), assigned once before the first insert
    order_id = models.CharField(max_length=32, unique=True, editable=False)

    class Status(models.TextChoices):
        PENDING = "pending"
        CONFIRMED = "confirmed"
        PROCESSING = "processing"
        SHIPPED = "shipped"
        DELIVERED = "delivered"
        CANCELLED = "cancelled"
        REFUNDED = "refunded"

    class PaymentMethod(models.TextChoices):
        RAZORPAY = "razorpay"
        COD = "cod"
        CARD = "card"
        UPI = "upi"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending"
        COMPLETED = "completed"
        FAILED = "failed"
        REFUNDED = "refunded"

    customer_name = models.CharField(max_length=200)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=32, blank=True, null=True)
    customer_user_id = models.CharField(max_length=64, blank=True, null=True)

    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)

    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    shipping_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("5.00"))
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0"))
    final_amount = models.DecimalField(max_digits=12, decimal_places=2)

    shipping_address = models.JSONField(null=True, blank=True)

    payment_method = models.CharField(max_length=16, choices=PaymentMethod.choices, default=PaymentMethod.RAZORPAY)
    payment_status = models.CharField(max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    transaction_id = models.CharField(max_length=64, blank=True, null=True)
    gateway_order_id = models.CharField(max_length=64, blank=True, null=True)
    gateway_payment_id = models.CharField(max_length=64, blank=True, null=True, db_index=True)
    gateway_signature = models.CharField(max_length=128, blank=True, null=True)

    tracking_carrier = models.CharField(max_length=64, blank=True, null=True)
    tracking_number = models.CharField(max_length=64, blank=True, null=True)
    tracking_url = models.URLField(blank=True, null=True)

    notes = models.TextField(blank=True, default="")
    stock_released = models.BooleanField(default=False)
    # bumped by every save; a save from a stale copy matches no row
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["customer_email", "-created_at"]),
            models.Index(fields=["status"]),
        ]


class OrderItemModel(models.Model):
    order = models.ForeignKey(OrderModel, on_delete=models.CASCADE, related_name="items")
    # Kept nullable so catalog clean-ups never destroy order history
    product = models.ForeignKey("catalog.Product", on_delete=models.SET_NULL, null=True, related_name="+")
    position = models.PositiveSmallIntegerField()
    name = models.CharField(max_length=200)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    quantity = models.PositiveIntegerField()
    image = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        db_table = "order_items"
        ordering = ["position"]


class OrderStatusEntryModel(models.Model):
    # Append-only: rows are inserted by OrderRepository and never updated
    order = models.ForeignKey(OrderModel, on_delete=models.CASCADE, related_name="status_history")
    status = models.CharField(max_length=16, choices=OrderModel.Status.choices)
    note = models.CharField(max_length=255, blank=True, default="")
    timestamp = models.DateTimeField()

    class Meta:
        db_table = "order_status_history"
        ordering = ["id"]


class IdempotencyKey(models.Model):
    key = models.CharField(max_length=200, primary_key=True)
    request_hash = models.CharField(max_length=64)
    response_status = models.PositiveSmallIntegerField(default=0)
    response_body = models.JSONField(default=dict)
    order = models.ForeignKey(OrderModel, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "idempotency_keys"

import uuid
from django.db import models


class Product(models.Model):
    # UUID PK exposed in the API and referenced by order line items
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Category(models.TextChoices):
        FASHION = "Fashion"
        DIGITAL = "Digital Products"

    class Badge(models.TextChoices):
        BESTSELLER = "Bestseller"
        NEW = "New"
        POPULAR = "Popular"
        SALE = "Sale"
        NONE = "None"

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2)
    original_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    category = models.CharField(max_length=32, choices=Category.choices, default=Category.FASHION)
    image = models.CharField(max_length=500, blank=True, default="")
    # Only apps.orders.inventory mutates stock
    stock = models.PositiveIntegerField(default=0)
    featured = models.BooleanField(default=False)
    badge = models.CharField(max_length=16, choices=Badge.choices, default=Badge.NONE)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "products"
        ordering = ["-featured", "-created_at"]
        indexes = [models.Index(fields=["category", "-featured"])]

    def __str__(self):
        return self.name

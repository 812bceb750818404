from decimal import Decimal

import pytest
from django.core.cache import cache

STAFF_TOKEN = "staff-token"
CUSTOMER_TOKEN = "customer-token"
GATEWAY_SECRET = "test_secret"


@pytest.fixture(autouse=True)
def use_stubs_for_tests(settings):
    settings.USE_HTTP_ADAPTERS = False
    settings.RAZORPAY_KEY_SECRET = GATEWAY_SECRET
    settings.API_TOKENS = {
        STAFF_TOKEN: {"sub": "ops@example.com", "roles": ["staff"]},
        CUSTOMER_TOKEN: {"sub": "asha@example.com", "roles": []},
    }


@pytest.fixture(autouse=True)
def reset_throttles_and_circuit():
    # throttle counters live in the locmem cache; the breaker is module state
    from apps.payments.http_adapters import gateway_cb

    cache.clear()
    gateway_cb.on_success()
    yield
    gateway_cb.on_success()


@pytest.fixture
def staff_auth():
    return {"HTTP_AUTHORIZATION": f"Bearer {STAFF_TOKEN}"}


@pytest.fixture
def make_product(db):
    from apps.catalog.models import Product

    def _make(name="Silk Scarf", price="10.50", stock=5, **extra):
        return Product.objects.create(
            name=name,
            description=f"{name} description",
            price=Decimal(price),
            stock=stock,
            image=f"{name.lower().replace(' ', '-')}.jpg",
            **extra,
        )

    return _make


@pytest.fixture
def order_payload():
    def _payload(*products_and_qty, email="asha@example.com"):
        return {
            "customer": {"name": "Asha Verma", "email": email, "phone": "+91 98765 43210"},
            "items": [
                {"product": str(p.id), "quantity": q, "price": 0.01}
                for p, q in products_and_qty
            ],
            "shippingAddress": {
                "fullName": "Asha Verma",
                "street": "12 MG Road",
                "city": "Pune",
                "state": "MH",
                "zipCode": "411001",
            },
            "payment": {"method": "razorpay"},
        }

    return _payload

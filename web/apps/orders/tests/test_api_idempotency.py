import pytest

from apps.orders.idempotency import get_or_create_idempotent
from apps.orders.models import IdempotencyKey, OrderModel

CREATE_URL = "/api/orders/"


@pytest.mark.django_db
def test_idempotent_same_payload_returns_same_order_on_retry(client, make_product, order_payload):
    scarf = make_product(stock=5)
    key = "idem-same-1"
    payload = order_payload((scarf, 2))

    r1 = client.post(CREATE_URL, data=payload, content_type="application/json", HTTP_IDEMPOTENCY_KEY=key)
    assert r1.status_code == 201
    body1 = r1.json()

    r2 = client.post(CREATE_URL, data=payload, content_type="application/json", HTTP_IDEMPOTENCY_KEY=key)
    assert r2.status_code == 201
    assert r2.json() == body1
    assert r2.headers.get("Idempotent-Replay") == "true"

    # stock reserved once, one order stored
    scarf.refresh_from_db()
    assert scarf.stock == 3
    assert OrderModel.objects.count() == 1
    assert str(IdempotencyKey.objects.get(pk=key).order_id) == body1["id"]


@pytest.mark.django_db
def test_idempotent_conflict_on_different_payload_with_same_key(client, make_product, order_payload):
    scarf = make_product(stock=5)
    key = "idem-conflict-1"

    r1 = client.post(CREATE_URL, data=order_payload((scarf, 2)), content_type="application/json", HTTP_IDEMPOTENCY_KEY=key)
    assert r1.status_code == 201

    r2 = client.post(CREATE_URL, data=order_payload((scarf, 3)), content_type="application/json", HTTP_IDEMPOTENCY_KEY=key)
    assert r2.status_code == 409
    assert r2.json()["detail"] == "IDEMPOTENCY_CONFLICT"
    scarf.refresh_from_db()
    assert scarf.stock == 3


@pytest.mark.django_db
def test_idempotent_replay_preserves_error_status(client, make_product, order_payload):
    scarf = make_product(stock=1)
    key = "idem-400"
    payload = order_payload((scarf, 3))

    r1 = client.post(CREATE_URL, data=payload, content_type="application/json", HTTP_IDEMPOTENCY_KEY=key)
    assert r1.status_code == 400

    r2 = client.post(CREATE_URL, data=payload, content_type="application/json", HTTP_IDEMPOTENCY_KEY=key)
    assert r2.status_code == 400
    assert r2.json() == r1.json()
    assert r2.headers.get("Idempotent-Replay") == "true"


@pytest.mark.django_db
def test_idempotent_request_still_in_flight(client, make_product, order_payload):
    scarf = make_product()
    payload = order_payload((scarf, 1))
    existing, _ = get_or_create_idempotent("idem-busy", payload)
    assert existing is False

    r = client.post(CREATE_URL, data=payload, content_type="application/json", HTTP_IDEMPOTENCY_KEY="idem-busy")
    assert r.status_code == 409
    assert r.json()["detail"] == "IDEMPOTENCY_IN_PROGRESS"
    scarf.refresh_from_db()
    assert scarf.stock == 5

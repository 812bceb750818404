import pytest

from apps.orders.errors import UpstreamGatewayError
from apps.payments import adapters
from apps.payments.domain import compute_signature


CREATE_URL = "/api/payments/create-order/"
GATEWAY_SECRET = "test_secret"
VERIFY_URL = "/api/payments/verify-payment/"
REFUND_URL = "/api/payments/refund/"


def _place(client, payload):
    r = client.post("/api/orders/", data=payload, content_type="application/json")
    assert r.status_code == 201, r.content
    return r.json()


def _verify_body(order_pk, gateway_order_id="order_abc", payment_id="pay_xyz", signature=None):
    return {
        "razorpay_order_id": gateway_order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": signature or compute_signature(GATEWAY_SECRET, gateway_order_id, payment_id),
        "order_id": order_pk,
    }


@pytest.mark.django_db
def test_create_payment_order(client):
    r = client.post(CREATE_URL, data={"amount": 499.5, "receipt": "rcpt_1"}, content_type="application/json")
    assert r.status_code == 200
    order = r.json()["order"]
    assert order["id"].startswith("order_")
    assert order["amount"] == 49950
    assert order["currency"] == "INR"
    assert order["receipt"] == "rcpt_1"


@pytest.mark.django_db
@pytest.mark.parametrize("amount", [0, -10])
def test_create_payment_order_rejects_non_positive_amount(client, amount):
    r = client.post(CREATE_URL, data={"amount": amount}, content_type="application/json")
    assert r.status_code == 400
    assert r.json()["detail"] == "VALIDATION_ERROR"


@pytest.mark.django_db
def test_create_payment_order_missing_amount(client):
    r = client.post(CREATE_URL, data={}, content_type="application/json")
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "amount"


@pytest.mark.django_db
def test_create_payment_order_gateway_failure(client, monkeypatch):
    """Gateway failures collapse to a generic 500."""

    def boom(self, amount_minor, currency, receipt, notes):
        raise UpstreamGatewayError("Payment gateway call failed")

    monkeypatch.setattr(adapters.GatewayStub, "create_order", boom)
    r = client.post(CREATE_URL, data={"amount": 100}, content_type="application/json")
    assert r.status_code == 500
    assert r.json() == {"detail": "UPSTREAM_GATEWAY_ERROR"}


@pytest.mark.django_db
def test_verify_payment_confirms_order(client, make_product, order_payload):
    scarf = make_product()
    order = _place(client, order_payload((scarf, 1)))

    r = client.post(VERIFY_URL, data=_verify_body(order["id"]), content_type="application/json")
    assert r.status_code == 200
    assert r.json() == {
        "message": "Payment verified successfully",
        "order": {"id": order["id"], "orderId": order["orderId"], "status": "confirmed"},
    }

    stored = client.get(f"/api/orders/{order['id']}/").json()
    assert stored["payment"]["status"] == "completed"
    assert stored["payment"]["transactionId"] == "pay_xyz"
    assert stored["payment"]["gatewayOrderId"] == "order_abc"
    assert stored["statusHistory"][-1] == {
        "status": "confirmed",
        "timestamp": stored["statusHistory"][-1]["timestamp"],
        "note": "Payment completed successfully",
    }


@pytest.mark.django_db
def test_verify_payment_tampered_signature(client, make_product, order_payload):
    scarf = make_product()
    order = _place(client, order_payload((scarf, 1)))

    r = client.post(
        VERIFY_URL,
        data=_verify_body(order["id"], signature="0" * 64),
        content_type="application/json",
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "SIGNATURE_MISMATCH"

    stored = client.get(f"/api/orders/{order['id']}/").json()
    assert stored["status"] == "pending"
    assert stored["payment"]["status"] == "pending"


@pytest.mark.django_db
def test_verify_payment_unknown_order(client):
    r = client.post(
        VERIFY_URL,
        data=_verify_body("0b0f3e5a-1111-4a2b-9c3d-4e5f60718293"),
        content_type="application/json",
    )
    assert r.status_code == 404
    assert r.json()["detail"] == "ORDER_NOT_FOUND"


@pytest.mark.django_db
def test_verify_payment_missing_fields(client):
    r = client.post(VERIFY_URL, data={"razorpay_order_id": "order_abc"}, content_type="application/json")
    assert r.status_code == 400
    fields = {e["field"] for e in r.json()["errors"]}
    assert {"razorpay_payment_id", "razorpay_signature", "order_id"} <= fields


@pytest.mark.django_db
def test_refund_requires_staff(client):
    r = client.post(REFUND_URL, data={"payment_id": "pay_xyz"}, content_type="application/json")
    assert r.status_code == 401
    r = client.post(
        REFUND_URL,
        data={"payment_id": "pay_xyz"},
        content_type="application/json",
        HTTP_AUTHORIZATION="Bearer customer-token",
    )
    assert r.status_code == 403


@pytest.mark.django_db
def test_refund_marks_order_refunded(client, make_product, order_payload, staff_auth):
    scarf = make_product()
    order = _place(client, order_payload((scarf, 1)))
    client.post(VERIFY_URL, data=_verify_body(order["id"]), content_type="application/json")

    r = client.post(
        REFUND_URL,
        data={"payment_id": "pay_xyz", "amount": 10.5},
        content_type="application/json",
        **staff_auth,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Refund processed successfully"
    assert body["refund"]["amount"] == 1050
    assert body["order"]["status"] == "refunded"
    assert body["order"]["payment"]["status"] == "refunded"
    assert body["order"]["statusHistory"][-1]["note"] == f"Payment refunded: {body['refund']['id']}"


@pytest.mark.django_db
def test_refund_unknown_payment(client, staff_auth):
    r = client.post(REFUND_URL, data={"payment_id": "pay_nobody"}, content_type="application/json", **staff_auth)
    assert r.status_code == 200
    assert r.json()["order"] is None


@pytest.mark.django_db
def test_payment_detail(client, staff_auth):
    assert client.get("/api/payments/pay_xyz/").status_code == 401

    r = client.get("/api/payments/pay_xyz/", **staff_auth)
    assert r.status_code == 200
    assert r.json()["payment"] == {"id": "pay_xyz", "entity": "payment", "status": "captured"}


@pytest.mark.django_db
def test_verify_payment_for_cancelled_order(client, make_product, order_payload):
    scarf = make_product(stock=3)
    order = _place(client, order_payload((scarf, 1)))
    assert client.patch(f"/api/orders/{order['id']}/cancel/").status_code == 200

    r = client.post(VERIFY_URL, data=_verify_body(order["id"], payment_id="pay_late"), content_type="application/json")
    assert r.status_code == 400
    assert r.json()["detail"] == "ORDER_NOT_PAYABLE"

    stored = client.get(f"/api/orders/{order['id']}/").json()
    assert stored["status"] == "cancelled"
    assert stored["payment"]["status"] == "pending"
    scarf.refresh_from_db()
    assert scarf.stock == 3

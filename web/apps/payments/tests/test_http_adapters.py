# web/apps/payments/tests/test_http_adapters.py
import httpx
import pytest

from apps.orders.errors import UpstreamGatewayError
from apps.payments.http_adapters import CLOSED, OPEN, HttpRazorpayClient, gateway_cb
from gateway.middleware import REQUEST_ID_CTX


@pytest.fixture
def fast_retries(settings, monkeypatch):
    settings.HTTP_RETRY_MAX = 3
    settings.HTTP_RETRY_BACKOFF_BASE = 0.0
    monkeypatch.setattr("time.sleep", lambda *a, **k: None, raising=True)


@pytest.fixture
def fake_gateway(monkeypatch):
    """Replace httpx.Client.request with a scripted sequence of outcomes.

    Each entry is an ``httpx.Response`` to return or an exception to raise.
    """
    calls = []
    script = []

    def fake_request(self, method, url, json=None, headers=None, **kwargs):
        calls.append({"method": method, "url": url, "json": json, "headers": dict(headers or {})})
        outcome = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(httpx.Client, "request", fake_request, raising=True)
    return calls, script


def _client():
    return HttpRazorpayClient(base_url="http://razorpay.test/v1", key_id="rzp_test", key_secret="s3cret")


def test_fetch_payment_retries_on_5xx(fast_retries, settings, fake_gateway):
    settings.HTTP_RETRY_MAX = 2
    calls, script = fake_gateway
    script += [httpx.Response(503), httpx.Response(200, json={"id": "pay_1", "status": "captured"})]

    assert _client().fetch_payment("pay_1") == {"id": "pay_1", "status": "captured"}
    assert len(calls) == 2
    assert calls[0]["method"] == "GET"
    assert calls[0]["url"] == "http://razorpay.test/v1/payments/pay_1"
    assert calls[1]["headers"]["X-Retry-Count"] == "1"


def test_fetch_payment_gives_up_after_max_attempts(fast_retries, fake_gateway):
    calls, script = fake_gateway
    script.append(httpx.Response(502))

    with pytest.raises(UpstreamGatewayError):
        _client().fetch_payment("pay_1")
    assert len(calls) == 3


def test_create_order_is_not_retried(fast_retries, fake_gateway):
    calls, script = fake_gateway
    script.append(httpx.Response(500))

    with pytest.raises(UpstreamGatewayError) as e:
        _client().create_order(49950, "INR", "rcpt_1", {})
    assert str(e.value) == "UPSTREAM_GATEWAY_ERROR"
    assert len(calls) == 1
    assert calls[0]["json"] == {
        "amount": 49950,
        "currency": "INR",
        "receipt": "rcpt_1",
        "notes": {},
        "payment_capture": 1,
    }


def test_refund_network_error_is_not_retried(fast_retries, fake_gateway):
    calls, script = fake_gateway
    script.append(httpx.ConnectError("connection refused"))

    with pytest.raises(UpstreamGatewayError):
        _client().refund("pay_1", 1050, {"reason": "damaged"})
    assert len(calls) == 1
    assert calls[0]["url"] == "http://razorpay.test/v1/payments/pay_1/refund"
    assert calls[0]["json"] == {"notes": {"reason": "damaged"}, "amount": 1050}


def test_full_refund_omits_amount(fast_retries, fake_gateway):
    calls, script = fake_gateway
    script.append(httpx.Response(200, json={"id": "rfnd_1", "status": "processed"}))

    assert _client().refund("pay_1", None, {})["id"] == "rfnd_1"
    assert "amount" not in calls[0]["json"]


def test_4xx_does_not_trip_the_circuit(fast_retries, fake_gateway):
    calls, script = fake_gateway
    script.append(httpx.Response(400, json={"error": {"code": "BAD_REQUEST_ERROR"}}))

    for _ in range(gateway_cb.fail_threshold + 1):
        with pytest.raises(UpstreamGatewayError):
            _client().create_order(100, "INR", "rcpt_1", {})
    assert gateway_cb.state == CLOSED
    assert len(calls) == gateway_cb.fail_threshold + 1


def test_circuit_opens_after_consecutive_failures(fast_retries, fake_gateway):
    calls, script = fake_gateway
    script.append(httpx.Response(500))

    for _ in range(gateway_cb.fail_threshold):
        with pytest.raises(UpstreamGatewayError):
            _client().create_order(100, "INR", "rcpt_1", {})
    assert gateway_cb.state == OPEN

    with pytest.raises(UpstreamGatewayError) as e:
        _client().fetch_payment("pay_1")
    assert "CIRCUIT_OPEN" in e.value.message
    assert len(calls) == gateway_cb.fail_threshold


def test_request_id_is_propagated(fast_retries, fake_gateway):
    calls, script = fake_gateway
    script.append(httpx.Response(200, json={"id": "order_1"}))

    token = REQUEST_ID_CTX.set("req-abc")
    try:
        _client().create_order(100, "INR", "rcpt_1", {})
    finally:
        REQUEST_ID_CTX.reset(token)
    assert calls[0]["headers"]["X-Request-ID"] == "req-abc"
    assert calls[0]["headers"]["X-Circuit-State"] == CLOSED

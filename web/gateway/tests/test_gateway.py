import logging

import pytest
from rest_framework.exceptions import AuthenticationFailed

from gateway.authentication import Principal, authenticate_token
from gateway.logging_filters import RequestIdFilter
from gateway.middleware import REQUEST_ID_CTX


def test_authenticate_token_known():
    principal = authenticate_token("staff-token")
    assert principal == Principal(subject="ops@example.com", roles=frozenset({"staff"}))
    assert principal.has_role("staff")
    assert principal.pk == "ops@example.com"


def test_authenticate_token_unknown():
    with pytest.raises(AuthenticationFailed):
        authenticate_token("forged")


def test_request_id_generated_when_missing(client):
    r = client.get("/api/orders/ping/")
    assert len(r["X-Request-ID"]) == 36


def test_request_id_echoed(client):
    r = client.get("/api/orders/ping/", HTTP_X_REQUEST_ID="edge-42")
    assert r["X-Request-ID"] == "edge-42"


def test_malformed_request_id_replaced(client):
    r = client.get("/api/orders/ping/", HTTP_X_REQUEST_ID="bad id\nInjected: yes")
    assert r["X-Request-ID"] != "bad id\nInjected: yes"
    assert len(r["X-Request-ID"]) == 36


def test_oversized_api_body_rejected(client, settings):
    settings.API_MAX_BYTES = 10
    r = client.post("/api/orders/", data={"customer": {"name": "x" * 50}}, content_type="application/json")
    assert r.status_code == 413
    assert r.json() == {"detail": "PAYLOAD_TOO_LARGE"}


def test_log_records_carry_request_id():
    record = logging.LogRecord("orders", logging.INFO, __file__, 1, "order placed", None, None)
    token = REQUEST_ID_CTX.set("req-7")
    try:
        assert RequestIdFilter().filter(record) is True
    finally:
        REQUEST_ID_CTX.reset(token)
    assert record.request_id == "req-7"

"""Razorpay HTTP client with circuit breaker, GET retries and context headers.

This module implements ``GatewayPort`` over the Razorpay REST API using
``httpx``. It adds:

- Request correlation: propagates ``X-Request-ID`` from the ContextVar set
  by the gateway middleware.
- A circuit breaker shared by every client instance, so an unhealthy
  gateway is not hammered; HALF_OPEN lets one trial call through after a
  timeout.
- Retries with exponential backoff on transport errors and 5xx, for GET
  requests only. Order creation and refunds are never retried
  automatically because a lost response could hide a completed side
  effect.

Every failure surfaces as ``UpstreamGatewayError``.
"""

import logging
import threading
import time
from typing import Optional

import httpx
from django.conf import settings

from apps.orders.errors import UpstreamGatewayError
from gateway.middleware import REQUEST_ID_CTX

from .domain import GatewayPort

logger = logging.getLogger("payments.gateway")

CLOSED, OPEN, HALF_OPEN = "CLOSED", "OPEN", "HALF_OPEN"


# ---------------- Circuit Breaker ---------------- #

class CircuitBreaker:
    """Minimal circuit breaker with CLOSED/OPEN/HALF_OPEN states.

    Transitions:
    - CLOSED → OPEN when consecutive failures reach ``fail_threshold``.
    - OPEN → HALF_OPEN after ``reset_timeout`` seconds.
    - HALF_OPEN → CLOSED on a successful trial call, back to OPEN on failure.
      Only one trial call is allowed in flight.

    Thread-safe via an internal lock.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.RLock()
        self._failures = 0
        self._state = CLOSED
        self._opened_at = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> str:
        with self._lock:
            if self._state == OPEN and (time.monotonic() - self._opened_at) >= self.reset_timeout:
                self._state = HALF_OPEN
                self._trial_in_flight = False
            return self._state

    def before_call(self) -> str:
        """Check the breaker before a protected call.

        Returns:
            str: The state at call time.

        Raises:
            RuntimeError: ``CIRCUIT_OPEN`` or ``CIRCUIT_HALF_OPEN_BUSY``.
        """
        with self._lock:
            st = self.state
            if st == OPEN:
                raise RuntimeError("CIRCUIT_OPEN")
            if st == HALF_OPEN:
                if self._trial_in_flight:
                    raise RuntimeError("CIRCUIT_HALF_OPEN_BUSY")
                self._trial_in_flight = True
            return st

    def on_success(self):
        with self._lock:
            self._failures = 0
            self._state = CLOSED
            self._trial_in_flight = False

    def on_failure(self):
        with self._lock:
            self._failures += 1
            if self._state == HALF_OPEN or (self._failures >= self.fail_threshold and self._state != OPEN):
                if self._state != OPEN:
                    logger.warning("circuit opened", extra={"circuit": self.name, "failures": self._failures})
                self._state = OPEN
                self._opened_at = time.monotonic()
                self._trial_in_flight = False

    def on_finish(self):
        with self._lock:
            if self._state == HALF_OPEN:
                self._trial_in_flight = False


gateway_cb = CircuitBreaker(
    "razorpay",
    getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
    getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
)


# ---------------- Helpers ---------------- #

def _request_headers(extra: Optional[dict] = None) -> dict:
    """Base headers: ``X-Request-ID`` from the ContextVar plus ``extra``."""
    headers: dict[str, str] = {}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def _retry_policy():
    """Return retry configuration as (max_attempts, backoff_base_seconds)."""
    return (
        max(1, getattr(settings, "HTTP_RETRY_MAX", 3)),
        getattr(settings, "HTTP_RETRY_BACKOFF_BASE", 0.15),
    )


def _should_retry(resp: Optional[httpx.Response], exc: Optional[Exception]) -> bool:
    # Retry only on transport errors or 5xx
    if exc is not None:
        return True
    if resp is not None and 500 <= resp.status_code < 600:
        return True
    return False


# ---------------- Razorpay Adapter ---------------- #

class HttpRazorpayClient(GatewayPort):
    """HTTP client for the Razorpay API (HTTP basic auth with key id/secret)."""

    def __init__(
        self,
        base_url: str | None = None,
        key_id: str | None = None,
        key_secret: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.RAZORPAY_BASE_URL).rstrip("/")
        self.auth = (
            key_id if key_id is not None else settings.RAZORPAY_KEY_ID,
            key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET,
        )
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    def create_order(self, amount_minor: int, currency: str, receipt: str, notes: dict) -> dict:
        payload = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
            "payment_capture": 1,
        }
        return self._call("POST", "/orders", payload)

    def fetch_payment(self, payment_id: str) -> dict:
        return self._call("GET", f"/payments/{payment_id}", retry=True)

    def refund(self, payment_id: str, amount_minor: Optional[int], notes: dict) -> dict:
        payload: dict = {"notes": notes}
        if amount_minor is not None:
            payload["amount"] = amount_minor
        return self._call("POST", f"/payments/{payment_id}/refund", payload)

    def _call(self, method: str, path: str, payload: Optional[dict] = None, retry: bool = False) -> dict:
        """Send one request through the circuit breaker.

        Business mappings:
        - 2xx → parsed JSON body.
        - 4xx → ``UpstreamGatewayError``; not counted as a circuit failure.
        - 5xx / transport errors → retried when ``retry`` is set, then
          ``UpstreamGatewayError``.
        """
        max_attempts, backoff = _retry_policy() if retry else (1, 0.0)
        tries = 0

        # CIRCUIT: precheck
        try:
            state = gateway_cb.before_call()
        except RuntimeError as e:
            raise UpstreamGatewayError(f"Payment gateway unavailable: {e}") from e
        headers = _request_headers({"X-Circuit-State": state, "X-Retry-Count": "0"})
        url = f"{self.base_url}{path}"

        try:
            with httpx.Client(timeout=self.timeout, auth=self.auth) as client:
                while True:
                    resp = None
                    exc = None
                    try:
                        resp = client.request(method, url, json=payload, headers=headers)
                        if 200 <= resp.status_code < 300:
                            gateway_cb.on_success()
                            return resp.json()
                        if 400 <= resp.status_code < 500:
                            gateway_cb.on_success()  # gateway is healthy, request was rejected
                            logger.warning("gateway rejected request", extra={"path": path, "status_code": resp.status_code})
                            raise UpstreamGatewayError(f"Gateway rejected request ({resp.status_code})")
                    except httpx.RequestError as e:
                        exc = e

                    tries += 1
                    headers["X-Retry-Count"] = str(tries)

                    if tries >= max_attempts or not _should_retry(resp, exc):
                        gateway_cb.on_failure()
                        logger.error(
                            "gateway call failed",
                            extra={"path": path, "tries": tries, "status_code": getattr(resp, "status_code", None)},
                        )
                        raise UpstreamGatewayError("Payment gateway call failed") from exc

                    sleep_s = backoff * (2 ** (tries - 1))  # exponential backoff
                    time.sleep(min(sleep_s, getattr(settings, "HTTP_RETRY_MAX_SLEEP", 0.5)))
        finally:
            gateway_cb.on_finish()

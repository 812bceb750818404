"""Request correlation and payload limits for the storefront API.

``RequestIdMiddleware`` gives every request an identifier. A client (the
storefront page, a load balancer) may send one in ``X-Request-Id``; it is
reused when it looks like an identifier, otherwise a UUIDv4 is generated.
The id is stored on ``request.request_id`` and in ``REQUEST_ID_CTX`` so log
records and outbound gateway calls carry it, and it is echoed back in the
``X-Request-ID`` response header.

``ApiSizeLimitMiddleware`` rejects ``/api/`` bodies larger than
``settings.API_MAX_BYTES`` with HTTP 413 before they reach the views.
"""

import contextvars
import re
import uuid

from django.conf import settings
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")

# ids end up in logs and upstream headers
_VALID_REQUEST_ID = re.compile(r"[A-Za-z0-9._:-]{1,128}")


def _incoming_request_id(value: str | None) -> str:
    if value and _VALID_REQUEST_ID.fullmatch(value):
        return value
    return str(uuid.uuid4())


class RequestIdMiddleware(MiddlewareMixin):
    HEADER = "HTTP_X_REQUEST_ID"
    RESPONSE_HEADER = "X-Request-ID"

    def process_request(self, request):
        request.request_id = _incoming_request_id(request.META.get(self.HEADER))
        REQUEST_ID_CTX.set(request.request_id)

    def process_response(self, request, response):
        response[self.RESPONSE_HEADER] = getattr(request, "request_id", REQUEST_ID_CTX.get())
        return response


class ApiSizeLimitMiddleware(MiddlewareMixin):
    """Refuse oversized API request bodies based on ``Content-Length``."""

    PREFIX = "/api/"

    def process_request(self, request):
        if not request.path.startswith(self.PREFIX):
            return None
        length = request.META.get("CONTENT_LENGTH") or ""
        if length.isdigit() and int(length) > settings.API_MAX_BYTES:
            return JsonResponse({"detail": "PAYLOAD_TOO_LARGE"}, status=413)
        return None

"""Map domain errors and pydantic validation failures to DRF responses.

Business-rule violations become 4xx responses carrying their code in
``detail``; infrastructure failures collapse to a generic 500 so internals
never leak to clients.
"""

import logging

from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.response import Response

from apps.orders.errors import StorefrontError, ValidationError

logger = logging.getLogger("gateway")

STATUS_BY_CODE = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ORDER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    # an unknown product in a placement request is a bad request, not a missing resource
    "PRODUCT_NOT_FOUND": status.HTTP_400_BAD_REQUEST,
    "INSUFFICIENT_STOCK": status.HTTP_400_BAD_REQUEST,
    "ORDER_NOT_CANCELLABLE": status.HTTP_400_BAD_REQUEST,
    "INVALID_STATUS": status.HTTP_400_BAD_REQUEST,
    "SIGNATURE_MISMATCH": status.HTTP_400_BAD_REQUEST,
    "ORDER_NOT_PAYABLE": status.HTTP_400_BAD_REQUEST,
    "CONCURRENT_UPDATE": status.HTTP_409_CONFLICT,
}


def pydantic_errors(exc: PydanticValidationError) -> list[dict]:
    """Flatten pydantic errors into ``[{field, message}]``."""
    return [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]


def validation_response(exc: PydanticValidationError) -> Response:
    return Response(
        {"detail": ValidationError.code, "errors": pydantic_errors(exc)},
        status=status.HTTP_400_BAD_REQUEST,
    )


def error_response(exc: StorefrontError) -> Response:
    """Build the HTTP response for a domain error.

    Args:
        exc: Any ``StorefrontError``. Codes without a mapping are treated as
            server-side failures.

    Returns:
        Response: ``{detail, message}`` (plus ``errors`` for validation).
    """
    code = str(exc)
    status_code = STATUS_BY_CODE.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("request failed", extra={"code": code, "error_message": exc.message})
        return Response({"detail": code}, status=status_code)

    body = {"detail": code, "message": exc.message}
    if isinstance(exc, ValidationError) and exc.errors:
        body["errors"] = exc.errors
    return Response(body, status=status_code)


def internal_error_response() -> Response:
    logger.exception("unexpected error")
    return Response({"detail": "INTERNAL_ERROR"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

"""HTTP views for the orders app.

This module contains DRF API views for the order lifecycle. Views are kept
intentionally small: they validate requests (via Pydantic), map to domain
DTOs, delegate to ``OrderService`` and return an HTTP response. Domain
errors are translated by ``gateway.errors.error_response``.

The views obtain a configured ``OrderService`` from
``providers.get_order_service()`` so tests can swap it.

Idempotency: when an ``Idempotency-Key`` header is provided, the create
endpoint processes the request once and stores the response. Retries with
the same payload replay the stored response (``Idempotent-Replay: true``);
reusing the key with a different payload returns HTTP 409.
"""
import logging

from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from gateway.authentication import IsStaff
from gateway.errors import error_response, internal_error_response, validation_response

from . import providers
from .errors import StorefrontError, ValidationError
from .idempotency import IdempotencyConflict, finalize, get_or_create_idempotent
from .schemas import CreateOrderDTO, OrderReadDTO, StatusUpdateDTO

logger = logging.getLogger("orders")


def _order_body(order) -> dict:
    return OrderReadDTO.from_order(order).to_json()


def _int_param(request, name: str, default: int) -> int:
    raw = request.GET.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(
            f"{name} must be an integer", errors=[{"field": name, "message": "Must be a positive integer"}]
        ) from None


class OrdersPingView(APIView):
    """Simple health-check endpoint for the orders module."""

    def get(self, request):
        return Response({"ok": True})


class OrdersCollectionView(APIView):
    """Place an order: validate, reserve stock, persist.

    Supports idempotency via the ``Idempotency-Key`` header.
    """
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_create"

    def post(self, request):
        """Create a new order.

        Returns:
            Response: One of the following responses.
            - 201 with the order payload when the order is created.
            - stored status/body with ``Idempotent-Replay: true`` on retries.
            - 409 ``IDEMPOTENCY_CONFLICT`` when the key is reused with a
              different payload, ``IDEMPOTENCY_IN_PROGRESS`` while the
              first request is still running.
            - 400 for validation errors, unknown products or insufficient
              stock.
            - 500 ``INTERNAL_ERROR`` for anything unexpected.
        """
        idem_key = request.headers.get("Idempotency-Key")

        # 1) Pydantic validation
        try:
            dto = CreateOrderDTO.model_validate(request.data)
        except PydanticValidationError as e:
            return validation_response(e)

        # 2) Idempotency get-or-create
        rec = None
        if idem_key:
            try:
                existing, rec = get_or_create_idempotent(idem_key, request.data)
            except IdempotencyConflict:
                return Response({"detail": "IDEMPOTENCY_CONFLICT"}, status=status.HTTP_409_CONFLICT)
            if existing:
                if not rec.response_status:
                    return Response({"detail": "IDEMPOTENCY_IN_PROGRESS"}, status=status.HTTP_409_CONFLICT)
                resp = Response(rec.response_body, status=rec.response_status)
                resp["Idempotent-Replay"] = "true"
                return resp

        # 3) Domain
        customer, items, address, method = dto.to_domain()
        service = providers.get_order_service()
        try:
            order = service.place_order(customer, items, address, method, dto.notes or "")
        except StorefrontError as e:
            resp = error_response(e)
        except Exception:
            resp = internal_error_response()
        else:
            body = _order_body(order)
            if rec:
                finalize(rec, status.HTTP_201_CREATED, body, order_pk=order.id)
            return Response(body, status=status.HTTP_201_CREATED)

        if rec:
            finalize(rec, resp.status_code, resp.data)
        return resp


class RetrieveOrderView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_read"

    def get(self, request, oid):
        try:
            order = providers.get_order_service().get_order(str(oid))
        except StorefrontError as e:
            return error_response(e)
        return Response(_order_body(order), status=200)


class TrackOrderView(APIView):
    """Look an order up by its human-facing id, case-insensitively."""
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_read"

    def get(self, request, order_id: str):
        try:
            order = providers.get_order_service().track_order(order_id)
        except StorefrontError as e:
            return error_response(e)
        return Response(_order_body(order), status=200)


class CustomerOrdersView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_read"

    def get(self, request, email: str):
        try:
            page = _int_param(request, "page", 1)
            limit = _int_param(request, "limit", 10)
            result = providers.get_order_service().list_orders_by_customer(email, page, limit)
        except StorefrontError as e:
            return error_response(e)
        return Response(
            {
                "orders": [_order_body(o) for o in result.orders],
                "totalPages": result.total_pages,
                "currentPage": result.page,
                "total": result.total,
            },
            status=200,
        )


class OrderStatusView(APIView):
    """Staff-only status change; any enumerated status is accepted."""
    permission_classes = [IsStaff]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_update"

    def patch(self, request, oid):
        try:
            dto = StatusUpdateDTO.model_validate(request.data)
        except PydanticValidationError as e:
            return validation_response(e)
        try:
            order = providers.get_order_service().change_status(str(oid), dto.status, dto.note)
        except StorefrontError as e:
            return error_response(e)
        except Exception:
            return internal_error_response()
        return Response(_order_body(order), status=200)


class CancelOrderView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_update"

    def patch(self, request, oid):
        try:
            order = providers.get_order_service().cancel_order(str(oid))
        except StorefrontError as e:
            return error_response(e)
        except Exception:
            return internal_error_response()
        return Response(_order_body(order), status=200)

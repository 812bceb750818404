"""Idempotency utilities for safely handling duplicate order submissions.

This module stores and retrieves idempotency keys to de-duplicate client
requests to the create-order endpoint. It supports creating an idempotent
record, detecting conflicts when the same key is used with a different
payload, and finalizing a stored response so subsequent retries can
short-circuit without reserving stock twice.
"""

import hashlib, json
from django.db import transaction, IntegrityError
from .models import IdempotencyKey


def _hash(payload: dict) -> str:
    """Compute a stable SHA-256 hash for a JSON-serializable payload.

    The payload is serialized with sorted keys and compact separators to
    ensure a deterministic representation before hashing.

    Args:
        payload: A JSON-serializable dictionary.

    Returns:
        str: Hex-encoded SHA-256 digest of the normalized payload.
    """
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


class IdempotencyConflict(ValueError):
    """The key was already used with a different payload."""


@transaction.atomic
def get_or_create_idempotent(key: str, payload: dict) -> tuple[bool, IdempotencyKey]:
    """Get-or-create an idempotency record for the given key and payload.

    Behavior:
        - First request with a new key: create a record and return
          ``(False, rec)``; the caller finalizes it once a response exists.
        - Retry with the same key and payload: lock and return
          ``(True, rec)``. ``rec.response_status`` is 0 while the first
          request is still being processed.
        - Retry with the same key but a different payload: raise
          ``IdempotencyConflict``.

    Raises:
        IdempotencyConflict: If the key exists with a different payload hash.
    """
    h = _hash(payload)

    try:
        # Nested savepoint: if IntegrityError occurs, only this block is rolled back.
        with transaction.atomic():
            rec = IdempotencyKey.objects.create(key=key, request_hash=h, response_status=0, response_body={})
            return False, rec
    except IntegrityError:
        rec = IdempotencyKey.objects.select_for_update().get(key=key)
        if rec.request_hash != h:
            raise IdempotencyConflict("IDEMPOTENCY_CONFLICT")
        return True, rec


def finalize(rec: IdempotencyKey, status_code: int, body: dict, order_pk=None) -> None:
    """Persist the final response for an idempotent request.

    Args:
        rec: The idempotency record to update.
        status_code: HTTP status code to store for the response.
        body: JSON-serializable response body to persist.
        order_pk: Optional primary key of the created order.
    """
    rec.response_status = status_code
    rec.response_body = body
    if order_pk is not None:
        rec.order_id = order_pk
    rec.save(update_fields=["response_status", "response_body", "order"])

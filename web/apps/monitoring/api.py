from django.db import connection
from django.db.utils import DatabaseError
from django.http import JsonResponse

from apps.payments.http_adapters import gateway_cb


def health_view(_request):
    db_ok = False
    try:
        with connection.cursor() as cur:
            cur.execute("SELECT 1;")
        db_ok = True
    except DatabaseError:
        db_ok = False

    # an open circuit degrades payments but the storefront keeps serving
    gateway_state = gateway_cb.state
    code = 200 if db_ok else 503
    return JsonResponse(
        {
            "ok": db_ok,
            "components": {
                "db": {"ok": db_ok},
                "gateway": {"ok": gateway_state != "OPEN", "circuit": gateway_state},
            },
        },
        status=code,
    )

"""Logging filter that stamps records with the current request id.

The ``request_id`` value comes from the ContextVar set by
``RequestIdMiddleware``; the JSON formatter configured in
``storefront.settings.LOGGING`` references it as ``%(request_id)s``.
"""

from logging import Filter, LogRecord
from .middleware import REQUEST_ID_CTX


class RequestIdFilter(Filter):
    """Attach a ``request_id`` attribute to log records.

    Outside a request (management commands, startup) the ContextVar default
    ``"-"`` is used so formatters can always reference the field.
    """

    def filter(self, record: LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = REQUEST_ID_CTX.get()
        return True

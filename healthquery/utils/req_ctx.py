import uuid

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

# Per-request fields (trace_id, path, method) read by the log formatter and
# the database helpers. None outside a request.
_REQUEST_FIELDS: ContextVar[dict[str, Any] | None] = ContextVar("healthquery_request", default=None)


def new_trace_id() -> str:
    return uuid.uuid4().hex


def get_req_ctx(key: str, default: Any = None) -> Any:
    fields = _REQUEST_FIELDS.get()
    if not fields:
        return default

    return fields.get(key, default)


@contextmanager
def set_req_ctx(fields: dict[str, Any]):
    """Bind `fields` for the enclosed block; tasks spawned inside inherit a copy."""

    token = _REQUEST_FIELDS.set(dict(fields))
    try:
        yield
    finally:
        _REQUEST_FIELDS.reset(token)

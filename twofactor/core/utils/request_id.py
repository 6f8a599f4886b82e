from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4

REQUEST_ID_HEADER = "x-request-id"
_MAX_INBOUND_LENGTH = 128

_REQUEST_ID: ContextVar[str | None] = ContextVar("twofactor_request_id", default=None)


def get_request_id() -> str | None:
    return _REQUEST_ID.get()


@contextmanager
def bound_request_id(inbound: str | None = None) -> Iterator[str]:
    value = _accept_inbound(inbound) or uuid4().hex
    token = _REQUEST_ID.set(value)
    try:
        yield value
    finally:
        _REQUEST_ID.reset(token)


def _accept_inbound(value: str | None) -> str | None:
    if not value:
        return None
    stripped = value.strip()
    if not stripped or len(stripped) > _MAX_INBOUND_LENGTH or not stripped.isprintable():
        return None
    return stripped

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


_correlation_id: ContextVar[str | None] = ContextVar("ats_correlation_id", default=None)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """Bind ``correlation_id`` to logs, spans and error envelopes produced inside the block."""
    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)


@dataclass
class RequestContext:
    request_id: str
    correlation_id: str
    user_id: str | None


def current_user_id(request: Request) -> str | None:
    context = getattr(request.state, "context", None)
    return context.user_id if context is not None else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Per-request ids; ``user_id`` is filled in once a bearer token has been decoded."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        request.state.context = RequestContext(
            request_id=uuid.uuid4().hex,
            correlation_id=get_correlation_id() or "",
            user_id=None,
        )
        response = await call_next(request)
        response.headers["x-request-id"] = request.state.context.request_id
        return response

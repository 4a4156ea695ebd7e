"""Correlation ID middleware.

Forwards X-Correlation-ID from the caller, falling back to the request id.
The value is also exposed through a context variable so use cases can tag
log lines (webhook deliveries, reconciliation sweeps) without threading the
request through.
"""

import uuid
from contextvars import ContextVar
from typing import Callable

from donorflow.middleware._asgi import get_header, with_response_header

current_correlation_id: ContextVar[str | None] = ContextVar("current_correlation_id", default=None)


def CorrelationIDMiddleware(app: Callable, header_name: str = "X-Correlation-ID") -> Callable:
    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return
        correlation_id = (
            get_header(scope, header_name)
            or scope.get("state", {}).get("request_id")
            or str(uuid.uuid4())
        )
        scope.setdefault("state", {})["correlation_id"] = correlation_id
        token = current_correlation_id.set(correlation_id)
        try:
            await app(scope, receive, with_response_header(send, header_name, correlation_id))
        finally:
            current_correlation_id.reset(token)

    return asgi_app

"""Request ID middleware.

Generates or forwards X-Request-ID and echoes it on the response. Client
values are sanitized (length + character set) before they reach logs.
Raw ASGI, no BaseHTTPMiddleware.
"""

import re
import uuid
from typing import Callable

from donorflow.middleware._asgi import get_header, with_response_header

REQUEST_ID_MAX_LENGTH = 64
REQUEST_ID_ALLOWED_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1," + str(REQUEST_ID_MAX_LENGTH) + r"}$")


def _sanitize_request_id(raw: str | None) -> str:
    """Return raw if safe for logging, else a new UUID."""
    if not raw or not REQUEST_ID_ALLOWED_PATTERN.match(raw.strip()):
        return str(uuid.uuid4())
    return raw.strip()


def RequestIDMiddleware(app: Callable, header_name: str = "X-Request-ID") -> Callable:
    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return
        request_id = _sanitize_request_id(get_header(scope, header_name))
        scope.setdefault("state", {})["request_id"] = request_id
        await app(scope, receive, with_response_header(send, header_name, request_id))

    return asgi_app

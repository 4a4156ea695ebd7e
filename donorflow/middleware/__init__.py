"""HTTP middleware: request ID and correlation ID.

Applied in donorflow.main; the last one added is outermost.
"""

from donorflow.middleware.correlation_id import CorrelationIDMiddleware, current_correlation_id
from donorflow.middleware.request_id import RequestIDMiddleware

__all__ = [
    "CorrelationIDMiddleware",
    "RequestIDMiddleware",
    "current_correlation_id",
]

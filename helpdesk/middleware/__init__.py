"""
Middleware modules for the helpdesk API.

Provides request processing middleware for:
- Correlation ID tracking so log lines and problem responses share a trace id
"""

from .correlation import (
    CorrelationIdMiddleware,
    CorrelationLogFilter,
    correlation_id_ctx,
    request_id_ctx,
)

__all__ = [
    "CorrelationIdMiddleware",
    "CorrelationLogFilter",
    "correlation_id_ctx",
    "request_id_ctx",
]

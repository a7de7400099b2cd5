"""
Middleware modules for the billing API.

Provides request processing middleware for:
- Correlation ID tracking so log lines can be tied to a request or dashboard socket
"""

from .correlation import (
    LOG_FORMAT,
    CorrelationIdMiddleware,
    CorrelationLogFilter,
    correlation_id_ctx,
    install_log_filter,
    request_id_ctx,
)

__all__ = [
    "LOG_FORMAT",
    "CorrelationIdMiddleware",
    "CorrelationLogFilter",
    "correlation_id_ctx",
    "install_log_filter",
    "request_id_ctx",
]

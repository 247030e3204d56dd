"""Structured request logging middleware with correlation ids and redaction."""

from __future__ import annotations

from time import perf_counter
from typing import Any
from uuid import uuid4

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

CORRELATION_ID_HEADER = "X-Correlation-ID"
SENSITIVE_KEYS = {"passphrase", "password", "secret", "token", "authorization"}
REDACTED = "***REDACTED***"

logger = structlog.get_logger(__name__)


def _is_sensitive_key(key: str) -> bool:
    """Return True when key likely carries secret material."""
    normalized = key.lower().replace("-", "_")
    return any(part in normalized for part in SENSITIVE_KEYS)


def _redact_mapping(values: dict[str, Any]) -> dict[str, Any]:
    """Redact sensitive values from a flat mapping."""
    return {key: REDACTED if _is_sensitive_key(key) else value for key, value in values.items()}


class LoggingMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id and emit one structured log per request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        """Log completion metadata for each request."""
        correlation_id = request.headers.get(CORRELATION_ID_HEADER, "").strip() or str(uuid4())
        request.state.correlation_id = correlation_id
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        start = perf_counter()
        query_params = _redact_mapping(dict(request.query_params.items()))
        try:
            try:
                response = await call_next(request)
            except Exception:
                logger.exception(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    query_params=query_params,
                    status_code=500,
                    duration_ms=round((perf_counter() - start) * 1000, 2),
                )
                raise

            event_logger = logger.warning if response.status_code >= 400 else logger.info
            event_logger(
                "request_completed",
                method=request.method,
                path=request.url.path,
                query_params=query_params,
                status_code=response.status_code,
                duration_ms=round((perf_counter() - start) * 1000, 2),
            )
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id")

        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response

"""Middleware package exports."""

from app.middleware.logging import LoggingMiddleware
from app.middleware.metrics import (
    DEFAULT_METRICS_REGISTRY,
    MetricsMiddleware,
    MetricsRegistry,
    build_metrics_endpoint,
)

__all__ = [
    "DEFAULT_METRICS_REGISTRY",
    "LoggingMiddleware",
    "MetricsMiddleware",
    "MetricsRegistry",
    "build_metrics_endpoint",
]

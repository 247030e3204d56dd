"""Prometheus-style metrics middleware and endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from time import perf_counter

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse, Response

_PREFIX = "gpg_key_service"
_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


@dataclass
class _DurationStat:
    """Aggregate duration stats per label tuple."""

    count: int = 0
    total_seconds: float = 0.0


class MetricsRegistry:
    """In-process registry for HTTP traffic, engine calls and parser discards."""

    def __init__(self) -> None:
        """Initialize counters and locks."""
        self._request_durations: dict[tuple[str, str, str], _DurationStat] = {}
        self._invocation_durations: dict[tuple[str, str], _DurationStat] = {}
        self._discarded_records = 0
        self._lock = Lock()

    def record(self, method: str, path: str, status: str, duration_seconds: float) -> None:
        """Record one request measurement for the label set."""
        with self._lock:
            stat = self._request_durations.setdefault((method, path, status), _DurationStat())
            stat.count += 1
            stat.total_seconds += duration_seconds

    def record_invocation(self, command: str, success: bool, duration_seconds: float) -> None:
        """Record one gpg invocation; signature matches the engine hook."""
        outcome = "success" if success else "failure"
        with self._lock:
            stat = self._invocation_durations.setdefault((command, outcome), _DurationStat())
            stat.count += 1
            stat.total_seconds += duration_seconds

    def record_discarded(self, count: int) -> None:
        """Count incomplete listing records dropped by the parser."""
        with self._lock:
            self._discarded_records += count

    @property
    def discarded_records(self) -> int:
        with self._lock:
            return self._discarded_records

    def render_prometheus_text(self) -> str:
        """Render metrics in Prometheus exposition format."""
        lines: list[str] = []
        with self._lock:
            lines.extend(
                _render_counter(
                    "http_requests_total",
                    "Total HTTP requests seen by the service.",
                    {
                        _format_labels(method=method, path=path, status=status): stat.count
                        for (method, path, status), stat in self._request_durations.items()
                    },
                )
            )
            lines.extend(
                _render_summary(
                    "http_request_duration_seconds",
                    "End-to-end HTTP request duration in seconds.",
                    {
                        _format_labels(method=method, path=path, status=status): stat
                        for (method, path, status), stat in self._request_durations.items()
                    },
                )
            )
            lines.extend(
                _render_summary(
                    "gpg_invocation_duration_seconds",
                    "Duration of gpg subprocess invocations in seconds.",
                    {
                        _format_labels(command=command, outcome=outcome): stat
                        for (command, outcome), stat in self._invocation_durations.items()
                    },
                )
            )
            lines.extend(
                _render_counter(
                    "gpg_discarded_records_total",
                    "Incomplete listing records dropped while parsing.",
                    {"": self._discarded_records},
                )
            )
        return "\n".join(lines) + "\n"


def _render_counter(name: str, help_text: str, values: dict[str, int]) -> list[str]:
    metric = f"{_PREFIX}_{name}"
    lines = [f"# HELP {metric} {help_text}", f"# TYPE {metric} counter"]
    for labels in sorted(values):
        suffix = f"{{{labels}}}" if labels else ""
        lines.append(f"{metric}{suffix} {values[labels]}")
    return lines


def _render_summary(name: str, help_text: str, stats: dict[str, _DurationStat]) -> list[str]:
    metric = f"{_PREFIX}_{name}"
    lines = [f"# HELP {metric} {help_text}", f"# TYPE {metric} summary"]
    for labels in sorted(stats):
        stat = stats[labels]
        lines.append(f"{metric}_count{{{labels}}} {stat.count}")
        lines.append(f"{metric}_sum{{{labels}}} {stat.total_seconds}")
    return lines


def _escape_label(value: str) -> str:
    """Escape string values for Prometheus label rendering."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _format_labels(**labels: str) -> str:
    """Build deterministic label set string."""
    return ",".join(f'{key}="{_escape_label(value)}"' for key, value in labels.items())


DEFAULT_METRICS_REGISTRY = MetricsRegistry()


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record metrics for all responses, including failed requests."""

    def __init__(self, app, registry: MetricsRegistry = DEFAULT_METRICS_REGISTRY) -> None:
        """Initialize middleware with optional custom metrics registry."""
        super().__init__(app)
        self._registry = registry

    async def dispatch(self, request: Request, call_next) -> Response:
        """Capture request counts and durations."""
        start = perf_counter()
        path = request.url.path
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route = request.scope.get("route")
            if route is not None:
                path = getattr(route, "path", path)
            self._registry.record(
                method=request.method,
                path=path,
                status=str(status_code),
                duration_seconds=perf_counter() - start,
            )


def build_metrics_endpoint(registry: MetricsRegistry = DEFAULT_METRICS_REGISTRY):
    """Build FastAPI-compatible endpoint that serves metrics text."""

    async def metrics_endpoint() -> PlainTextResponse:
        """Return current metrics in Prometheus exposition format."""
        return PlainTextResponse(registry.render_prometheus_text(), media_type=_CONTENT_TYPE)

    return metrics_endpoint

"""FastAPI application factory."""

from fastapi import FastAPI

from app.config import configure_structlog, get_settings
from app.error_handlers import register_exception_handlers
from app.middleware.logging import LoggingMiddleware
from app.middleware.metrics import MetricsMiddleware, build_metrics_endpoint
from app.routers import health, keys


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_structlog(settings)

    app = FastAPI(title=settings.app.service)
    register_exception_handlers(app, environment=settings.app.environment)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(MetricsMiddleware)

    app.add_api_route(
        "/metrics", build_metrics_endpoint(), methods=["GET"], include_in_schema=False
    )
    app.include_router(keys.router)
    app.include_router(health.router)
    return app


app = create_app()

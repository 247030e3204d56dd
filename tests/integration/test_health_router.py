"""Integration tests for health endpoints."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.error_handlers import register_exception_handlers
from app.routers.health import check_gpg_ready, router


def _build_health_app(gpg_ready: bool) -> FastAPI:
    """Build app with health router and deterministic dependency overrides."""
    app = FastAPI()
    register_exception_handlers(app, environment="production")
    app.include_router(router)

    async def _gpg_override() -> bool:
        return gpg_ready

    app.dependency_overrides[check_gpg_ready] = _gpg_override
    return app


@pytest.mark.asyncio
async def test_health_live_returns_200() -> None:
    """Liveness probe always returns 200."""
    app = _build_health_app(gpg_ready=False)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        response = await client.get("/health/live")

    assert response.status_code == 200
    assert response.json() == {"status": "live"}


@pytest.mark.asyncio
async def test_health_ready_returns_200_when_gpg_runs() -> None:
    """Readiness returns 200 when the engine answers."""
    app = _build_health_app(gpg_ready=True)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        response = await client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


@pytest.mark.asyncio
async def test_health_ready_returns_503_when_gpg_is_unavailable() -> None:
    """Readiness returns 503 when the engine cannot run."""
    app = _build_health_app(gpg_ready=False)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        response = await client.get("/health/ready")

    assert response.status_code == 503
    assert response.json() == {"detail": "Service not ready.", "code": "engine_failure"}


@pytest.mark.asyncio
async def test_check_gpg_ready_uses_configured_engine(monkeypatch, fake_engine) -> None:
    """The readiness check asks the engine for its version."""
    from app.routers import health as health_module

    monkeypatch.setattr(health_module, "get_gpg_engine", lambda: fake_engine)
    assert await check_gpg_ready() is True

    fake_engine.fail_commands.add("--version")
    assert await check_gpg_ready() is False

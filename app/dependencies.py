"""Shared dependency helpers wiring settings into the gpg client."""

from __future__ import annotations

from functools import lru_cache

from app.config import get_settings
from app.middleware.metrics import DEFAULT_METRICS_REGISTRY
from gpgkeys import GPGClient, GPGEngine


@lru_cache
def get_gpg_engine() -> GPGEngine:
    """Create and cache the engine bound to the configured key store."""
    settings = get_settings()
    engine = GPGEngine(
        homedir=settings.gpg.homedir,
        binary=settings.gpg.binary,
        on_invocation=DEFAULT_METRICS_REGISTRY.record_invocation,
    )
    if settings.gpg.create_homedir:
        engine.ensure_homedir()
    return engine


@lru_cache
def get_gpg_client() -> GPGClient:
    """Create and cache the lifecycle client."""
    return GPGClient(
        engine=get_gpg_engine(),
        on_discarded=DEFAULT_METRICS_REGISTRY.record_discarded,
    )

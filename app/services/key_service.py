"""Fingerprint-addressed key lifecycle service used by the HTTP API and CLI."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

import structlog

from app.dependencies import get_gpg_client
from gpgkeys import GPGClient, KeyRecord

KeyStore = Literal["private", "public"]

logger = structlog.get_logger(__name__)


class KeyServiceError(Exception):
    """Raised for key service failures that map onto API error responses."""

    def __init__(self, detail: str, code: str, status_code: int) -> None:
        super().__init__(detail)
        self.detail = detail
        self.code = code
        self.status_code = status_code


def _not_found(fingerprint: str) -> KeyServiceError:
    return KeyServiceError(f"No key with fingerprint {fingerprint}.", "key_not_found", 404)


class KeyService:
    """Resolve fingerprints to records and drive lifecycle operations."""

    def __init__(self, client: GPGClient) -> None:
        self._client = client

    async def list_keys(self, store: KeyStore) -> list[KeyRecord]:
        """List all records of one store."""
        if store == "private":
            return await self._client.list_private_keys()
        return await self._client.list_public_keys()

    async def get_key(self, store: KeyStore, fingerprint: str) -> KeyRecord:
        """Return the record with ``fingerprint`` or raise key_not_found."""
        if store == "private":
            key = await self._client.get_private_key_by_fingerprint(fingerprint)
        else:
            key = await self._client.get_public_key_by_fingerprint(fingerprint)
        if key is None:
            raise _not_found(fingerprint)
        return key

    async def find_private_key_by_email(self, email: str) -> KeyRecord:
        """Return the first private key whose user id contains ``email``."""
        key = await self._client.get_private_key_by_email(email)
        if key is None:
            raise KeyServiceError("No private key matches that email.", "key_not_found", 404)
        return key

    async def create_primary_key(self, name: str, email: str, passphrase: str = "") -> KeyRecord:
        """Create a primary key and return its private record."""
        key = await self._client.create_primary_key(name, email, passphrase)
        _log_lifecycle("create_primary_key", key)
        return key

    async def create_sub_key(self, primary_fingerprint: str, passphrase: str = "") -> KeyRecord:
        """Add a signing sub-key to the private primary key with that fingerprint."""
        primary_key = await self._require_private(primary_fingerprint, primary=True)
        key = await self._client.create_sub_key(primary_key, passphrase)
        _log_lifecycle("create_sub_key", key, primary_fingerprint=primary_fingerprint)
        return key

    async def delete_primary_key(self, fingerprint: str) -> KeyRecord:
        """Delete a primary key together with its sub-keys."""
        primary_key = await self._require_private(fingerprint, primary=True)
        await self._client.delete_primary_key(primary_key)
        _log_lifecycle("delete_primary_key", primary_key)
        return primary_key

    async def delete_sub_key(self, fingerprint: str) -> KeyRecord:
        """Delete a single sub-key from both stores."""
        sub_key = await self._require_private(fingerprint, primary=False)
        await self._client.delete_sub_key(sub_key)
        _log_lifecycle("delete_sub_key", sub_key)
        return sub_key

    async def export_public_key_block(self, fingerprint: str) -> str:
        """Export the armored public block of any key in the public store."""
        key = await self.get_key("public", fingerprint)
        return await self._client.get_public_key_block(key)

    async def _require_private(self, fingerprint: str, primary: bool) -> KeyRecord:
        key = await self.get_key("private", fingerprint)
        if key.is_primary != primary:
            expected = "primary key" if primary else "sub-key"
            raise KeyServiceError(
                f"Key {fingerprint} is not a {expected}.", "invalid_key_variant", 409
            )
        return key


def _log_lifecycle(action: str, key: KeyRecord, **extra: str) -> None:
    logger.info(
        "key_lifecycle",
        action=action,
        variant=key.variant.value,
        key_id=key.id,
        fingerprint=key.fingerprint,
        **extra,
    )


@lru_cache
def get_key_service() -> KeyService:
    """Create and cache key service dependency."""
    return KeyService(client=get_gpg_client())

"""Async key lifecycle client on top of the gpg engine."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import structlog

from gpgkeys.engine import GPGEngine
from gpgkeys.exceptions import GPGResponseError
from gpgkeys.parser import parse_colon_listing
from gpgkeys.types import KeyRecord

KEY_ALGORITHM = "ed25519"
PRIMARY_USAGE = "cert"
PRIMARY_EXPIRY = "never"
SUB_KEY_USAGE = "sign"
SUB_KEY_EXPIRY = "1y"

_LIST_FLAGS = ("--with-colons", "--with-fingerprint")
# Suffix that pins a fingerprint to exactly that (sub)key.
_EXACT_KEY_SUFFIX = "!"

DiscardHook = Callable[[int], None]

logger = structlog.get_logger(__name__)


def newest_record(records: Sequence[KeyRecord]) -> KeyRecord:
    """Return the record a creation call just produced.

    gpg appends new keys at the end of its listing, so the newest key is the
    last record of a fresh listing. This is the single place that relies on
    that ordering; swap it for a before/after fingerprint diff if the engine
    ever stops honouring it.
    """
    if not records:
        raise GPGResponseError("Key listing is empty after key creation.")
    return records[-1]


def format_user_id(name: str, email: str) -> str:
    """Build the ``"<name> <email>"`` user id gpg stores on primary keys."""
    return f"{name} <{email}>"


class GPGClient:
    """Create, query and delete primary keys and sub-keys in one key store.

    Every query lists the store again and reparses it; nothing is cached
    between calls.
    """

    def __init__(self, engine: GPGEngine, on_discarded: DiscardHook | None = None) -> None:
        self._engine = engine
        self._on_discarded = on_discarded

    @property
    def engine(self) -> GPGEngine:
        return self._engine

    async def create_primary_key(self, name: str, email: str, passphrase: str = "") -> KeyRecord:
        """Generate a certification-only primary key that never expires."""
        await self._engine.run(
            [
                *self._passphrase_args(passphrase),
                "--quick-generate-key",
                format_user_id(name, email),
                KEY_ALGORITHM,
                PRIMARY_USAGE,
                PRIMARY_EXPIRY,
            ]
        )
        return newest_record(await self.list_private_keys())

    async def create_sub_key(self, primary_key: KeyRecord, passphrase: str = "") -> KeyRecord:
        """Add a signing sub-key valid for one year to ``primary_key``."""
        await self._engine.run(
            [
                *self._passphrase_args(passphrase),
                "--quick-add-key",
                primary_key.fingerprint,
                KEY_ALGORITHM,
                SUB_KEY_USAGE,
                SUB_KEY_EXPIRY,
            ]
        )
        return newest_record(await self.list_private_keys())

    async def delete_primary_key(self, primary_key: KeyRecord) -> None:
        """Delete the private then the public half of a primary key.

        Sub-keys go with it; gpg cascades the deletion. A failure on the public
        step leaves the private half already deleted.
        """
        await self._delete(primary_key.fingerprint, secret=True)
        await self._delete(primary_key.fingerprint, secret=False)
        logger.info("gpg_primary_key_deleted", fingerprint=primary_key.fingerprint)

    async def delete_sub_key(self, sub_key: KeyRecord) -> None:
        """Delete the private then the public half of one sub-key."""
        selector = f"{sub_key.fingerprint}{_EXACT_KEY_SUFFIX}"
        await self._delete(selector, secret=True)
        await self._delete(selector, secret=False)
        logger.info("gpg_sub_key_deleted", fingerprint=sub_key.fingerprint)

    async def get_public_key_block(self, key: KeyRecord) -> str:
        """Export the ASCII-armored public key block for ``key``."""
        return await self._engine.run(["--armor", "--export", key.fingerprint])

    async def list_private_keys(self) -> list[KeyRecord]:
        """List every secret-store record in engine order."""
        return await self._list("--list-secret-keys")

    async def list_public_keys(self) -> list[KeyRecord]:
        """List every public-store record in engine order."""
        return await self._list("--list-public-keys")

    async def get_private_key_by_fingerprint(self, fingerprint: str) -> KeyRecord | None:
        return _first(await self.list_private_keys(), lambda key: key.fingerprint == fingerprint)

    async def get_public_key_by_fingerprint(self, fingerprint: str) -> KeyRecord | None:
        return _first(await self.list_public_keys(), lambda key: key.fingerprint == fingerprint)

    async def get_private_key_by_email(self, email: str) -> KeyRecord | None:
        """Return the first private key whose user id contains ``email``."""
        return _first(await self.list_private_keys(), lambda key: _username_contains(key, email))

    async def get_public_key_by_email(self, email: str) -> KeyRecord | None:
        """Return the first public key whose user id contains ``email``."""
        return _first(await self.list_public_keys(), lambda key: _username_contains(key, email))

    async def _list(self, command: str) -> list[KeyRecord]:
        output = await self._engine.run([command, *_LIST_FLAGS])
        result = parse_colon_listing(output)
        if result.discarded:
            logger.debug(
                "gpg_partial_records_discarded",
                command=command,
                discarded=result.discarded,
            )
            if self._on_discarded is not None:
                self._on_discarded(result.discarded)
        return result.records

    async def _delete(self, selector: str, secret: bool) -> None:
        command = "--delete-secret-key" if secret else "--delete-key"
        await self._engine.run(["--batch", "--yes", command, selector])

    @staticmethod
    def _passphrase_args(passphrase: str) -> list[str]:
        """Non-interactive passphrase options; an empty one leaves the key unprotected."""
        return ["--batch", "--pinentry-mode", "loopback", "--passphrase", passphrase]


def _username_contains(key: KeyRecord, email: str) -> bool:
    return key.username is not None and email in key.username


def _first(records: list[KeyRecord], predicate: Callable[[KeyRecord], Any]) -> KeyRecord | None:
    for record in records:
        if predicate(record):
            return record
    return None

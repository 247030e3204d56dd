"""Shared fixtures: an in-memory stand-in for the gpg engine."""

from __future__ import annotations

import hashlib
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest
import structlog

from gpgkeys import GPGClient, GPGEngine, GPGInvocationError

BASE_TIMESTAMP = 1_700_000_000
ONE_YEAR_SECONDS = 365 * 24 * 60 * 60
ARMOR_HEADER = "-----BEGIN PGP PUBLIC KEY BLOCK-----"
ARMOR_FOOTER = "-----END PGP PUBLIC KEY BLOCK-----"


@dataclass
class _FakeKey:
    """One key held by the fake store."""

    fingerprint: str
    created: int
    expires: int | None
    user_id: str | None = None
    has_secret: bool = True
    sub_keys: list[_FakeKey] = field(default_factory=list)

    @property
    def key_id(self) -> str:
        return self.fingerprint[-16:]


class FakeGPGEngine(GPGEngine):
    """Emulate the subset of gpg the client drives, emitting real colon listings."""

    def __init__(self, homedir: str | Path = "/tmp/fake-gnupg") -> None:
        super().__init__(homedir=homedir, binary="gpg")
        self.primaries: list[_FakeKey] = []
        self.calls: list[list[str]] = []
        self.fail_commands: set[str] = set()
        self._counter = 0

    async def run(self, args: Sequence[str]) -> str:
        """Dispatch on the command flag the client passed."""
        args = list(args)
        self.calls.append(args)
        for command in self.fail_commands:
            if command in args:
                raise GPGInvocationError(f"gpg {command} failed.", returncode=2, stderr="boom")

        if "--quick-generate-key" in args:
            return self._generate(args[args.index("--quick-generate-key") + 1])
        if "--quick-add-key" in args:
            return self._add_sub_key(args[args.index("--quick-add-key") + 1])
        if "--list-secret-keys" in args:
            return self._listing(secret=True)
        if "--list-public-keys" in args:
            return self._listing(secret=False)
        if "--delete-secret-key" in args:
            return self._delete(args[args.index("--delete-secret-key") + 1], secret=True)
        if "--delete-key" in args:
            return self._delete(args[args.index("--delete-key") + 1], secret=False)
        if "--export" in args:
            return self._export(args[args.index("--export") + 1])
        if "--version" in args:
            return "gpg (GnuPG) 2.4.4\nlibgcrypt 1.10.3\n"
        raise GPGInvocationError("unsupported command", returncode=2)

    def _next_fingerprint(self) -> tuple[str, int]:
        self._counter += 1
        digest = hashlib.sha1(f"fake-key-{self._counter}".encode()).hexdigest().upper()
        return digest, BASE_TIMESTAMP + self._counter

    def _generate(self, user_id: str) -> str:
        fingerprint, created = self._next_fingerprint()
        self.primaries.append(
            _FakeKey(fingerprint=fingerprint, created=created, expires=None, user_id=user_id)
        )
        return ""

    def _add_sub_key(self, primary_fingerprint: str) -> str:
        primary = self._find_primary(primary_fingerprint)
        if primary is None:
            raise GPGInvocationError("No secret key", returncode=2)
        fingerprint, created = self._next_fingerprint()
        primary.sub_keys.append(
            _FakeKey(fingerprint=fingerprint, created=created, expires=created + ONE_YEAR_SECONDS)
        )
        return ""

    def _find_primary(self, fingerprint: str) -> _FakeKey | None:
        for primary in self.primaries:
            if primary.fingerprint == fingerprint:
                return primary
        return None

    def _delete(self, selector: str, secret: bool) -> str:
        if selector.endswith("!"):
            return self._delete_sub_key(selector[:-1], secret)
        primary = self._find_primary(selector)
        if primary is None:
            raise GPGInvocationError("key not found", returncode=2)
        if secret:
            primary.has_secret = False
            for sub_key in primary.sub_keys:
                sub_key.has_secret = False
        elif primary.has_secret:
            raise GPGInvocationError("there is a secret key for this public key", returncode=2)
        else:
            self.primaries.remove(primary)
        return ""

    def _delete_sub_key(self, fingerprint: str, secret: bool) -> str:
        for primary in self.primaries:
            for sub_key in primary.sub_keys:
                if sub_key.fingerprint != fingerprint:
                    continue
                if secret:
                    sub_key.has_secret = False
                else:
                    primary.sub_keys.remove(sub_key)
                return ""
        raise GPGInvocationError("key not found", returncode=2)

    def _listing(self, secret: bool) -> str:
        primary_tag, sub_tag = ("sec", "ssb") if secret else ("pub", "sub")
        lines = [] if secret else ["tru::1:1700000000:0:3:1:5"]
        for primary in self.primaries:
            if secret and not primary.has_secret:
                continue
            lines.extend(self._key_lines(primary_tag, primary, "cC"))
            lines.append(
                f"uid:u::::{primary.created}::{primary.key_id}::{primary.user_id}::::::::::0:"
            )
            for sub_key in primary.sub_keys:
                if secret and not sub_key.has_secret:
                    continue
                lines.extend(self._key_lines(sub_tag, sub_key, "s"))
        return "\r\n".join(lines) + "\r\n" if lines else ""

    @staticmethod
    def _key_lines(tag: str, key: _FakeKey, capabilities: str) -> list[str]:
        expires = "" if key.expires is None else str(key.expires)
        fields = [tag, "u", "255", "22", key.key_id, str(key.created), expires, "", "u", ""]
        return [
            ":".join(fields) + f"::{capabilities}:::+:::ed25519:::0:",
            f"fpr:::::::::{key.fingerprint}:",
            f"grp:::::::::{key.fingerprint[:20]}{key.fingerprint[:20]}:",
        ]

    def _export(self, fingerprint: str) -> str:
        return f"{ARMOR_HEADER}\r\n\r\nmDMEZfake{fingerprint}\r\n{ARMOR_FOOTER}\r\n"


@pytest.fixture
def fake_engine() -> FakeGPGEngine:
    """Fresh in-memory key store per test."""
    return FakeGPGEngine()


@pytest.fixture
def gpg_client(fake_engine: FakeGPGEngine) -> GPGClient:
    """Lifecycle client bound to the fake engine."""
    return GPGClient(engine=fake_engine)


@pytest.fixture(autouse=True)
def _quiet_structlog() -> Iterator[None]:
    """Keep log output out of captured streams and never cache loggers across tests."""
    structlog.configure(
        processors=[],
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()

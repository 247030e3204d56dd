"""Unit tests for the gpg subprocess runner."""

from __future__ import annotations

import stat
import sys
from pathlib import Path
from typing import Any

import pytest

from gpgkeys import engine as engine_module
from gpgkeys.engine import REDACTED, GPGEngine, redact_args
from gpgkeys.exceptions import GPGInvocationError

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell stand-ins")


class _CaptureLogger:
    """Capture structlog-like logger calls for assertions."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def debug(self, event: str, **kwargs: Any) -> None:
        self.calls.append(("debug", event, kwargs))

    def info(self, event: str, **kwargs: Any) -> None:
        self.calls.append(("info", event, kwargs))

    def warning(self, event: str, **kwargs: Any) -> None:
        self.calls.append(("warning", event, kwargs))


def _script(tmp_path: Path, body: str) -> str:
    """Write an executable shell script standing in for the gpg binary."""
    path = tmp_path / "fake-gpg"
    path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.mark.asyncio
async def test_run_passes_argument_vector_without_shell(tmp_path: Path) -> None:
    """Arguments reach the binary verbatim, quotes and spaces included."""
    binary = _script(tmp_path, "printf '%s\\n' \"$@\"")
    engine = GPGEngine(homedir=tmp_path / "home", binary=binary)

    output = await engine.run(["--passphrase", 'it"s $(rm -rf)', "John Doe <j@x.org>"])

    assert output.splitlines() == [
        "--homedir",
        str(tmp_path / "home"),
        "--passphrase",
        'it"s $(rm -rf)',
        "John Doe <j@x.org>",
    ]


@pytest.mark.asyncio
async def test_run_raises_with_returncode_and_stderr_on_failure(tmp_path: Path) -> None:
    """Non-zero exit raises GPGInvocationError carrying the raw diagnostics."""
    binary = _script(tmp_path, "echo 'gpg: key not found' >&2\nexit 2")
    engine = GPGEngine(homedir=tmp_path, binary=binary)

    with pytest.raises(GPGInvocationError) as exc_info:
        await engine.run(["--delete-key", "ABC"])

    assert exc_info.value.returncode == 2
    assert "key not found" in exc_info.value.stderr
    assert "--delete-key" in exc_info.value.detail


@pytest.mark.asyncio
async def test_run_raises_when_binary_cannot_start(tmp_path: Path) -> None:
    """A missing binary is an invocation failure, not an OSError leak."""
    engine = GPGEngine(homedir=tmp_path, binary=str(tmp_path / "missing-gpg"))

    with pytest.raises(GPGInvocationError) as exc_info:
        await engine.run(["--version"])

    assert exc_info.value.returncode is None


@pytest.mark.asyncio
async def test_invocation_hook_and_logs_redact_passphrase(tmp_path: Path, monkeypatch) -> None:
    """The hook sees the command name and logs never carry the passphrase."""
    capture = _CaptureLogger()
    monkeypatch.setattr(engine_module, "logger", capture)
    seen: list[tuple[str, bool]] = []
    binary = _script(tmp_path, "exit 0")
    engine = GPGEngine(
        homedir=tmp_path,
        binary=binary,
        on_invocation=lambda command, success, _duration: seen.append((command, success)),
    )

    await engine.run(["--batch", "--passphrase", "s3cret", "--quick-generate-key", "Me"])

    assert seen == [("--quick-generate-key", True)]
    level, event, payload = capture.calls[0]
    assert (level, event) == ("debug", "gpg_invocation")
    assert "s3cret" not in payload["argv"]
    assert REDACTED in payload["argv"]


@pytest.mark.asyncio
async def test_version_returns_first_line(tmp_path: Path) -> None:
    """version() reports the banner line of gpg --version."""
    binary = _script(tmp_path, "echo 'gpg (GnuPG) 2.4.4'\necho 'libgcrypt 1.10.3'")
    engine = GPGEngine(homedir=tmp_path, binary=binary)

    assert await engine.version() == "gpg (GnuPG) 2.4.4"


def test_redact_args_masks_only_passphrase_values() -> None:
    """Values after --passphrase are masked, even when they look like flags."""
    assert redact_args(["--passphrase", "--yes", "--yes"]) == ["--passphrase", REDACTED, "--yes"]
    assert redact_args(["--list-secret-keys"]) == ["--list-secret-keys"]


def test_build_argv_scopes_every_call_to_homedir(tmp_path: Path) -> None:
    """The home directory is always passed explicitly."""
    engine = GPGEngine(homedir=tmp_path, binary="gpg2")

    assert engine.build_argv(["--list-public-keys"]) == [
        "gpg2",
        "--homedir",
        str(tmp_path),
        "--list-public-keys",
    ]


def test_ensure_homedir_creates_private_directory(tmp_path: Path) -> None:
    """Missing home directories are created owner-only."""
    homedir = tmp_path / "nested" / "gnupg"
    engine = GPGEngine(homedir=homedir)

    assert engine.ensure_homedir() == homedir
    assert homedir.is_dir()
    assert stat.S_IMODE(homedir.stat().st_mode) & 0o077 == 0

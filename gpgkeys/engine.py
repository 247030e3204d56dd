"""Async subprocess runner for the gpg command-line engine."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Sequence
from pathlib import Path
from time import perf_counter

import structlog

from gpgkeys.exceptions import GPGInvocationError

DEFAULT_BINARY = "gpg"
REDACTED = "***REDACTED***"
_SECRET_FLAGS = {"--passphrase"}
_DIRECTORY_MODE = 0o700

InvocationHook = Callable[[str, bool, float], None]

logger = structlog.get_logger(__name__)


def redact_args(args: Sequence[str]) -> list[str]:
    """Return a copy of ``args`` with values following secret flags masked."""
    redacted: list[str] = []
    mask_next = False
    for arg in args:
        if mask_next:
            redacted.append(REDACTED)
            mask_next = False
            continue
        redacted.append(arg)
        mask_next = arg in _SECRET_FLAGS
    return redacted


# Options that modify a command rather than name it.
_OPTION_FLAGS = {
    "--batch",
    "--yes",
    "--armor",
    "--with-colons",
    "--with-fingerprint",
}
_VALUE_FLAGS = {"--pinentry-mode", "--passphrase"}


def _command_name(args: Sequence[str]) -> str:
    """Pick the gpg command flag (e.g. ``--list-secret-keys``) for labelling."""
    skip_next = False
    for arg in args:
        if skip_next:
            skip_next = False
            continue
        if arg in _VALUE_FLAGS:
            skip_next = True
            continue
        if arg.startswith("--") and arg not in _OPTION_FLAGS:
            return arg
    return "unknown"


class GPGEngine:
    """Run gpg against one home directory using argument vectors, never a shell."""

    def __init__(
        self,
        homedir: str | Path,
        binary: str = DEFAULT_BINARY,
        on_invocation: InvocationHook | None = None,
    ) -> None:
        """Create engine bound to an explicit key-store directory."""
        self._homedir = Path(homedir)
        self._binary = binary
        self._on_invocation = on_invocation

    @property
    def homedir(self) -> Path:
        return self._homedir

    @property
    def binary(self) -> str:
        return self._binary

    def build_argv(self, args: Sequence[str]) -> list[str]:
        """Build the full argument vector for one invocation."""
        return [self._binary, "--homedir", str(self._homedir), *args]

    def ensure_homedir(self) -> Path:
        """Create the home directory with owner-only permissions if missing."""
        if not self._homedir.exists():
            self._homedir.mkdir(parents=True, mode=_DIRECTORY_MODE)
            logger.info("gpg_homedir_created", homedir=str(self._homedir))
        return self._homedir

    async def run(self, args: Sequence[str]) -> str:
        """Run gpg with ``args`` and return its standard output.

        Raises GPGInvocationError when the process cannot be started or exits
        with a non-zero status. Diagnostic output is carried on the exception
        but never interpreted.
        """
        argv = self.build_argv(args)
        command = _command_name(args)
        logger.debug("gpg_invocation", command=command, argv=redact_args(argv))
        start = perf_counter()

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._environment(),
            )
            stdout_bytes, stderr_bytes = await process.communicate()
        except OSError as exc:
            self._record(command, success=False, start=start)
            logger.warning("gpg_invocation_failed", command=command, error=str(exc))
            raise GPGInvocationError(f"Unable to start {self._binary}: {exc}") from exc

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        if process.returncode != 0:
            self._record(command, success=False, start=start)
            logger.warning(
                "gpg_invocation_failed",
                command=command,
                returncode=process.returncode,
            )
            raise GPGInvocationError(
                f"gpg {command} exited with status {process.returncode}.",
                returncode=process.returncode,
                stderr=stderr,
            )

        self._record(command, success=True, start=start)
        return stdout

    async def version(self) -> str:
        """Return the first line of ``gpg --version``."""
        output = await self.run(["--version"])
        lines = output.splitlines()
        return lines[0] if lines else ""

    def _environment(self) -> dict[str, str]:
        """Child environment with a stable locale so output stays parseable."""
        env = dict(os.environ)
        env.pop("GNUPGHOME", None)
        env["LC_ALL"] = "C"
        return env

    def _record(self, command: str, success: bool, start: float) -> None:
        if self._on_invocation is not None:
            self._on_invocation(command, success, perf_counter() - start)

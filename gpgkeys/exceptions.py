"""Library exception hierarchy."""

from __future__ import annotations


class GPGError(Exception):
    """Base class for all gpgkeys exceptions."""


class GPGInvocationError(GPGError):
    """Raised when the engine exits non-zero or cannot be started."""

    def __init__(
        self,
        detail: str,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        """Initialize with exit status and raw diagnostic output."""
        super().__init__(detail)
        self.detail = detail
        self.returncode = returncode
        self.stderr = stderr


class GPGResponseError(GPGError):
    """Raised when the engine succeeded but returned nothing usable."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

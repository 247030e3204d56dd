"""Key record data model for parsed GnuPG listings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

EPOCH = datetime.fromtimestamp(0, tz=UTC)


class KeyVariant(str, Enum):
    """Record-type tag of a key line in colon listings."""

    PRIVATE_PRIMARY = "sec"
    PRIVATE_SUB = "ssb"
    PUBLIC_PRIMARY = "pub"
    PUBLIC_SUB = "sub"

    @property
    def is_primary(self) -> bool:
        """Return True for top-level identity keys."""
        return self in (KeyVariant.PRIVATE_PRIMARY, KeyVariant.PUBLIC_PRIMARY)

    @property
    def is_private(self) -> bool:
        """Return True for records listed from the secret store."""
        return self in (KeyVariant.PRIVATE_PRIMARY, KeyVariant.PRIVATE_SUB)

    @property
    def counterpart(self) -> KeyVariant:
        """Return the variant of the same key on the other store."""
        return _COUNTERPARTS[self]


_COUNTERPARTS = {
    KeyVariant.PRIVATE_PRIMARY: KeyVariant.PUBLIC_PRIMARY,
    KeyVariant.PUBLIC_PRIMARY: KeyVariant.PRIVATE_PRIMARY,
    KeyVariant.PRIVATE_SUB: KeyVariant.PUBLIC_SUB,
    KeyVariant.PUBLIC_SUB: KeyVariant.PRIVATE_SUB,
}


class ExpirationKind(str, Enum):
    """Tri-state expiration marker."""

    NEVER = "never"
    UNSPECIFIED = "unspecified"
    AT = "at"


@dataclass(frozen=True)
class Expiration:
    """Key expiration that keeps "never" and "unknown" apart."""

    kind: ExpirationKind
    at: datetime | None = None

    @classmethod
    def never(cls) -> Expiration:
        return cls(ExpirationKind.NEVER)

    @classmethod
    def unspecified(cls) -> Expiration:
        return cls(ExpirationKind.UNSPECIFIED)

    @classmethod
    def at_time(cls, value: datetime) -> Expiration:
        return cls(ExpirationKind.AT, value)

    def as_datetime(self) -> datetime:
        """Return the legacy timestamp form where epoch zero means no expiration."""
        if self.kind is ExpirationKind.AT and self.at is not None:
            return self.at
        return EPOCH


@dataclass(frozen=True)
class KeyRecord:
    """One complete key parsed from an engine listing."""

    variant: KeyVariant
    id: str
    fingerprint: str
    creation_time: datetime
    expiration: Expiration
    username: str | None = None

    @property
    def expiration_time(self) -> datetime:
        """Expiration as a timestamp, epoch zero when the key does not expire."""
        return self.expiration.as_datetime()

    @property
    def is_primary(self) -> bool:
        return self.variant.is_primary

    @property
    def is_private(self) -> bool:
        return self.variant.is_private

    def to_dict(self) -> dict[str, Any]:
        """Serialize into a JSON-friendly mapping."""
        return {
            "variant": self.variant.value,
            "id": self.id,
            "fingerprint": self.fingerprint,
            "username": self.username,
            "creation_time": self.creation_time.isoformat(),
            "expiration": self.expiration.kind.value,
            "expires_at": (
                self.expiration.at.isoformat() if self.expiration.at is not None else None
            ),
        }


@dataclass
class PartialKeyRecord:
    """Mutable accumulator filled line by line while parsing."""

    variant: KeyVariant | None = None
    id: str = ""
    fingerprint: str = ""
    username: str | None = None
    creation_time: datetime | None = None
    expiration: Expiration = Expiration(ExpirationKind.UNSPECIFIED)


def validate(partial: PartialKeyRecord | None) -> KeyRecord | None:
    """Promote a partial record to a complete one, or return None when incomplete.

    A record is complete when it has a variant, an id, a fingerprint and a
    creation time. Incomplete partials are not an error; the parser relies on
    this to drop fragments at record boundaries.
    """
    if partial is None:
        return None
    if partial.variant is None or not partial.id or not partial.fingerprint:
        return None
    if partial.creation_time is None:
        return None
    return KeyRecord(
        variant=partial.variant,
        id=partial.id,
        fingerprint=partial.fingerprint,
        creation_time=partial.creation_time,
        expiration=partial.expiration,
        username=partial.username,
    )

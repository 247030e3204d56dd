"""Key request/response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from gpgkeys import ExpirationKind, KeyRecord, KeyVariant


class PrimaryKeyCreateRequest(BaseModel):
    """Create primary key request payload."""

    name: str = Field(min_length=1, max_length=256)
    email: str = Field(min_length=3, max_length=256)
    passphrase: str = ""


class SubKeyCreateRequest(BaseModel):
    """Create sub-key request payload."""

    passphrase: str = ""


class KeyResponse(BaseModel):
    """One parsed key record."""

    variant: KeyVariant
    id: str
    fingerprint: str
    username: str | None
    creation_time: datetime
    expiration: ExpirationKind
    expires_at: datetime | None

    @classmethod
    def from_record(cls, record: KeyRecord) -> KeyResponse:
        return cls(
            variant=record.variant,
            id=record.id,
            fingerprint=record.fingerprint,
            username=record.username,
            creation_time=record.creation_time,
            expiration=record.expiration.kind,
            expires_at=record.expiration.at,
        )


class KeyDeleteResponse(BaseModel):
    """Deleted key acknowledgement."""

    detail: str
    fingerprint: str
    variant: KeyVariant

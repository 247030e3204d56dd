"""Key lifecycle routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, PlainTextResponse

from app.schemas.keys import (
    KeyDeleteResponse,
    KeyResponse,
    PrimaryKeyCreateRequest,
    SubKeyCreateRequest,
)
from app.services.key_service import KeyService, KeyServiceError, get_key_service

router = APIRouter(prefix="/keys", tags=["keys"])

KeyServiceDep = Annotated[KeyService, Depends(get_key_service)]


def _error_response(exc: KeyServiceError) -> JSONResponse:
    """Build standardized API error response payload."""
    return JSONResponse(
        status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code}
    )


@router.get("/private", response_model=list[KeyResponse])
async def list_private_keys(key_service: KeyServiceDep) -> list[KeyResponse]:
    """List secret-store records in engine order."""
    return [KeyResponse.from_record(key) for key in await key_service.list_keys("private")]


@router.get("/public", response_model=list[KeyResponse])
async def list_public_keys(key_service: KeyServiceDep) -> list[KeyResponse]:
    """List public-store records in engine order."""
    return [KeyResponse.from_record(key) for key in await key_service.list_keys("public")]


@router.get("/private/search", response_model=KeyResponse)
async def find_private_key_by_email(
    key_service: KeyServiceDep,
    email: Annotated[str, Query(min_length=1)],
) -> KeyResponse | JSONResponse:
    """Find the first private key whose user id contains the email."""
    try:
        key = await key_service.find_private_key_by_email(email)
    except KeyServiceError as exc:
        return _error_response(exc)
    return KeyResponse.from_record(key)


@router.get("/private/{fingerprint}", response_model=KeyResponse)
async def get_private_key(
    fingerprint: str, key_service: KeyServiceDep
) -> KeyResponse | JSONResponse:
    """Fetch one private record by fingerprint."""
    try:
        key = await key_service.get_key("private", fingerprint)
    except KeyServiceError as exc:
        return _error_response(exc)
    return KeyResponse.from_record(key)


@router.get("/public/{fingerprint}", response_model=KeyResponse)
async def get_public_key(
    fingerprint: str, key_service: KeyServiceDep
) -> KeyResponse | JSONResponse:
    """Fetch one public record by fingerprint."""
    try:
        key = await key_service.get_key("public", fingerprint)
    except KeyServiceError as exc:
        return _error_response(exc)
    return KeyResponse.from_record(key)


@router.post("", response_model=KeyResponse, status_code=201)
async def create_primary_key(
    payload: PrimaryKeyCreateRequest, key_service: KeyServiceDep
) -> KeyResponse:
    """Create a certification-only primary key."""
    key = await key_service.create_primary_key(payload.name, payload.email, payload.passphrase)
    return KeyResponse.from_record(key)


@router.post("/{fingerprint}/subkeys", response_model=KeyResponse, status_code=201)
async def create_sub_key(
    fingerprint: str,
    payload: SubKeyCreateRequest,
    key_service: KeyServiceDep,
) -> KeyResponse | JSONResponse:
    """Add a signing sub-key to an existing primary key."""
    try:
        key = await key_service.create_sub_key(fingerprint, payload.passphrase)
    except KeyServiceError as exc:
        return _error_response(exc)
    return KeyResponse.from_record(key)


@router.delete("/subkeys/{fingerprint}", response_model=KeyDeleteResponse)
async def delete_sub_key(
    fingerprint: str, key_service: KeyServiceDep
) -> KeyDeleteResponse | JSONResponse:
    """Delete one sub-key from both stores."""
    try:
        key = await key_service.delete_sub_key(fingerprint)
    except KeyServiceError as exc:
        return _error_response(exc)
    return KeyDeleteResponse(
        detail="Sub-key deleted.", fingerprint=key.fingerprint, variant=key.variant
    )


@router.delete("/{fingerprint}", response_model=KeyDeleteResponse)
async def delete_primary_key(
    fingerprint: str, key_service: KeyServiceDep
) -> KeyDeleteResponse | JSONResponse:
    """Delete a primary key and, through gpg, its sub-keys."""
    try:
        key = await key_service.delete_primary_key(fingerprint)
    except KeyServiceError as exc:
        return _error_response(exc)
    return KeyDeleteResponse(
        detail="Primary key deleted.", fingerprint=key.fingerprint, variant=key.variant
    )


@router.get("/{fingerprint}/armor", response_class=PlainTextResponse, response_model=None)
async def export_public_key_block(
    fingerprint: str, key_service: KeyServiceDep
) -> PlainTextResponse | JSONResponse:
    """Export the ASCII-armored public key block."""
    try:
        block = await key_service.export_public_key_block(fingerprint)
    except KeyServiceError as exc:
        return _error_response(exc)
    return PlainTextResponse(block, media_type="application/pgp-keys")

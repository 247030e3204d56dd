"""Parser for GnuPG ``--with-colons`` key listings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from gpgkeys.types import EPOCH, Expiration, KeyRecord, KeyVariant, PartialKeyRecord, validate

FIELD_SEPARATOR = ":"

TAG_FINGERPRINT = "fpr"
TAG_USER_ID = "uid"

_OPENING_TAGS = {variant.value: variant for variant in KeyVariant}

# Positional field indexes in a colon record.
_FIELD_TAG = 0
_FIELD_KEY_ID = 4
_FIELD_CREATED = 5
_FIELD_EXPIRES = 6
_FIELD_USER_ID = 9


@dataclass(frozen=True)
class ParseResult:
    """Records recovered from one listing plus the count of dropped fragments."""

    records: list[KeyRecord] = field(default_factory=list)
    discarded: int = 0


def _field(fields: list[str], index: int) -> str | None:
    """Return a positional field, or None when the line is too short."""
    if index < len(fields):
        return fields[index]
    return None


def _from_unix_seconds(raw: str) -> datetime | None:
    """Convert a decimal Unix timestamp to UTC, or None when it is not representable."""
    if not raw.isdecimal():
        return None
    try:
        return datetime.fromtimestamp(int(raw), tz=UTC)
    except (ValueError, OverflowError, OSError):
        return None


def _parse_timestamp(raw: str | None) -> datetime | None:
    """Convert Unix seconds to UTC; empty means epoch, garbage means unknown."""
    if raw is None or raw == "":
        return EPOCH
    return _from_unix_seconds(raw)


def _parse_expiration(raw: str | None) -> Expiration:
    """Map the expiration field onto the tri-state model."""
    if raw is None:
        return Expiration.unspecified()
    if raw in ("", "0"):
        return Expiration.never()
    expires = _from_unix_seconds(raw)
    if expires is None:
        return Expiration.unspecified()
    return Expiration.at_time(expires)


class ColonListingParser:
    """Forward-scanning state machine over a flat colon record stream.

    Key lines (``sec``, ``ssb``, ``pub``, ``sub``) close the record in progress
    and open a new one. ``fpr`` and ``uid`` lines attach their field 9 value to
    whichever record is open; with none open the value is lost. Every other tag
    is ignored.
    """

    def __init__(self) -> None:
        self._records: list[KeyRecord] = []
        self._current: PartialKeyRecord | None = None
        self._discarded = 0

    def feed(self, line: str) -> None:
        """Consume one listing line."""
        fields = line.split(FIELD_SEPARATOR)
        tag = fields[_FIELD_TAG]

        variant = _OPENING_TAGS.get(tag)
        if variant is not None:
            self._close_current()
            self._current = PartialKeyRecord(
                variant=variant,
                id=_field(fields, _FIELD_KEY_ID) or "",
                creation_time=_parse_timestamp(_field(fields, _FIELD_CREATED)),
                expiration=_parse_expiration(_field(fields, _FIELD_EXPIRES)),
            )
            return

        if self._current is None:
            return
        if tag == TAG_FINGERPRINT:
            self._current.fingerprint = _field(fields, _FIELD_USER_ID) or ""
        elif tag == TAG_USER_ID:
            self._current.username = _field(fields, _FIELD_USER_ID)

    def finish(self) -> ParseResult:
        """Flush the final record and return everything parsed so far."""
        self._close_current()
        return ParseResult(records=list(self._records), discarded=self._discarded)

    def _close_current(self) -> None:
        if self._current is None:
            return
        record = validate(self._current)
        if record is None:
            self._discarded += 1
        else:
            self._records.append(record)
        self._current = None


def parse_colon_listing(text: str) -> ParseResult:
    """Parse engine listing output into key records in input order.

    Lines are CRLF-separated in the engine contract; bare LF is accepted too.
    """
    parser = ColonListingParser()
    for line in text.splitlines():
        parser.feed(line)
    return parser.finish()


def parse_keys(text: str) -> list[KeyRecord]:
    """Parse a listing and return only the records."""
    return parse_colon_listing(text).records

"""Public gpgkeys exports."""

from gpgkeys.client import GPGClient, newest_record
from gpgkeys.engine import GPGEngine
from gpgkeys.exceptions import GPGError, GPGInvocationError, GPGResponseError
from gpgkeys.parser import ParseResult, parse_colon_listing, parse_keys
from gpgkeys.types import EPOCH, Expiration, ExpirationKind, KeyRecord, KeyVariant

__all__ = [
    "EPOCH",
    "Expiration",
    "ExpirationKind",
    "GPGClient",
    "GPGEngine",
    "GPGError",
    "GPGInvocationError",
    "GPGResponseError",
    "KeyRecord",
    "KeyVariant",
    "ParseResult",
    "newest_record",
    "parse_colon_listing",
    "parse_keys",
]

"""
Master key authorization for the Cosmos DB REST API.

Builds the per-request authorization token described in:
https://learn.microsoft.com/en-us/rest/api/cosmos-db/access-control-on-cosmosdb-resources

String to sign:
    lower(verb)\\n
    lower(resourceType)\\n
    resourceLink\\n
    lower(x-ms-date)\\n
    \\n

Author: cosmosrest Team
Date: 2026-10-12
"""

import base64
import binascii
import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

from cosmosrest.exceptions import InvalidCredentialError

logger = logging.getLogger(__name__)

RFC1123_FORMAT = "%a, %d %b %Y %H:%M:%S GMT"

DEFAULT_KEY_TYPE = "master"
DEFAULT_TOKEN_VERSION = "1.0"

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass
class AuthSignature:
    """A single-use signature for one request."""

    verb: str
    resource_type: str
    resource_link: str
    date: str
    digest: str
    token: str = field(repr=False)


def format_request_date(moment: Optional[datetime] = None) -> str:
    """
    Format a UTC timestamp for the x-ms-date header.

    Weekday and month names are emitted in English regardless of locale.

    Args:
        moment: Timestamp to format (default: now)

    Returns:
        RFC1123 date string, e.g. "Wed, 21 Oct 2020 07:28:00 GMT"
    """
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return (
        f"{_WEEKDAYS[moment.weekday()]}, {moment.day:02d} {_MONTHS[moment.month - 1]} "
        f"{moment.year:04d} {moment.hour:02d}:{moment.minute:02d}:{moment.second:02d} GMT"
    )


def build_string_to_sign(
    verb: str,
    resource_link: str,
    resource_type: str,
    date: str
) -> str:
    """
    Build the payload the HMAC is computed over.

    The resource link keeps its case; verb, resource type and date are
    lowercased. A link equal to its resource type (listing at the account
    root, e.g. "dbs") is signed as the empty string.

    Args:
        verb: HTTP method
        resource_link: Hierarchical resource path (e.g. "dbs/MyDb/colls/MyColl")
        resource_type: One of "dbs", "colls", "docs"
        date: The exact string sent in x-ms-date

    Returns:
        String to sign
    """
    if resource_link == resource_type:
        resource_link = ""

    return (
        f"{verb.lower()}\n"
        f"{resource_type.lower()}\n"
        f"{resource_link}\n"
        f"{date.lower()}\n"
        "\n"
    )


def _decode_key(key: str) -> bytes:
    try:
        return base64.b64decode(key, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise InvalidCredentialError(f"Master key is not valid base64: {e}") from e


def compute_digest(string_to_sign: str, key: str) -> str:
    """
    Compute the base64 HMAC-SHA256 of a payload.

    Signature = Base64(HMAC-SHA256(UTF8(StringToSign), Base64Decode(Key)))

    Raises:
        InvalidCredentialError: If the key is not valid base64
    """
    key_bytes = _decode_key(key)
    digest = hmac.new(key_bytes, string_to_sign.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def sign_request(
    verb: str,
    resource_link: str,
    resource_type: str,
    date: str,
    key: str,
    key_type: str = DEFAULT_KEY_TYPE,
    token_version: str = DEFAULT_TOKEN_VERSION
) -> AuthSignature:
    """
    Sign one request and return the full signature record.

    Args:
        verb: HTTP method
        resource_link: Case-correct resource path
        resource_type: "dbs", "colls" or "docs"
        date: RFC1123 date sent verbatim in x-ms-date
        key: Base64-encoded master key
        key_type: "master" or "resource"
        token_version: Token version embedded in the header

    Returns:
        AuthSignature holding the digest and the URL-encoded token

    Raises:
        InvalidCredentialError: If the key is malformed
    """
    payload = build_string_to_sign(verb, resource_link, resource_type, date)
    digest = compute_digest(payload, key)
    token = quote(f"type={key_type}&ver={token_version}&sig={digest}", safe="")

    signed_link = "" if resource_link == resource_type else resource_link
    logger.debug(f"Signed {verb.upper()} {resource_type} '{signed_link}'")

    return AuthSignature(
        verb=verb,
        resource_type=resource_type,
        resource_link=signed_link,
        date=date,
        digest=digest,
        token=token,
    )


def compute_signature(
    verb: str,
    resource_link: str,
    resource_type: str,
    date: str,
    key: str,
    key_type: str = DEFAULT_KEY_TYPE,
    token_version: str = DEFAULT_TOKEN_VERSION
) -> str:
    """Return the URL-encoded value for the Authorization header."""
    return sign_request(
        verb, resource_link, resource_type, date, key, key_type, token_version
    ).token

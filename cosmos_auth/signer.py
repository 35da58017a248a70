"""Master-key request signing for the Azure Cosmos DB REST API.

Every REST call carries an ``x-ms-date`` header and an ``Authorization``
header whose signature is an HMAC-SHA256 over a newline-joined canonical
payload::

    lower(verb) \\n lower(resource_type) \\n resource_id \\n lower(date) \\n \\n

keyed with the Base64-decoded account master key.  The token
``type=master&ver=1.0&sig=<signature>`` is then percent-encoded so it can
travel as a header value.

Everything here is pure: no I/O, no shared state.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import format_datetime
from urllib.parse import quote, unquote

from relay_connector.errors import ServiceError

TOKEN_TYPE = "master"
TOKEN_VERSION = "1.0"


class InvalidCredentialError(ServiceError):
    """The master key is missing or is not valid Base64.

    Raised before any HMAC is computed.  Retrying cannot help, so callers
    should fail the enclosing unit of work.
    """


def http_date(now: datetime | None = None) -> str:
    """Format *now* (default: current time) as an RFC 7231 HTTP-date in GMT."""
    if now is None:
        now = datetime.now(UTC)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return format_datetime(now.astimezone(UTC), usegmt=True)


def decode_master_key(master_key: str | bytes | None) -> bytes:
    """Strictly decode a Base64 master key into raw HMAC key bytes.

    Trailing ``=`` padding may be left off; any other deviation from the
    standard alphabet is rejected.
    """
    if not master_key:
        raise InvalidCredentialError("Master key is not set")
    try:
        raw = master_key.encode("ascii") if isinstance(master_key, str) else bytes(master_key)
        if b"=" not in raw:
            raw += b"=" * (-len(raw) % 4)
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidCredentialError(f"Master key is not valid Base64: {exc}") from exc


@dataclass(frozen=True)
class SigningRequest:
    """Inputs for signing one REST call."""

    http_verb: str
    resource_type: str
    resource_id: str
    timestamp: str
    master_key: str | bytes | None

    def canonical_payload(self) -> str:
        return (
            f"{self.http_verb.lower()}\n"
            f"{self.resource_type.lower()}\n"
            f"{self.resource_id}\n"
            f"{self.timestamp.lower()}\n"
            "\n"
        )


@dataclass(frozen=True)
class SignedToken:
    """The ``type=master&ver=1.0&sig=...`` authorization token."""

    signature: str
    token_type: str = TOKEN_TYPE
    token_version: str = TOKEN_VERSION

    def __str__(self) -> str:
        return f"type={self.token_type}&ver={self.token_version}&sig={self.signature}"

    def encode(self) -> str:
        """Percent-encode the whole token for use as a header value."""
        return quote(str(self), safe="")

    @classmethod
    def parse(cls, value: str) -> SignedToken:
        """Parse a token, percent-encoded or not, back into its fields."""
        decoded = unquote(value) if "%" in value else value
        # split by hand: parse_qsl would turn "+" in the signature into a space
        fields = dict(part.split("=", 1) for part in decoded.split("&") if "=" in part)
        try:
            return cls(
                signature=fields["sig"],
                token_type=fields["type"],
                token_version=fields["ver"],
            )
        except KeyError as exc:
            raise ValueError(f"Not an authorization token: missing {exc.args[0]!r}") from exc


def compute_signature(request: SigningRequest) -> str:
    """Return the Base64 HMAC-SHA256 signature for *request*."""
    key = decode_master_key(request.master_key)
    digest = hmac.new(
        key,
        request.canonical_payload().encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def sign(
    verb: str,
    resource_type: str,
    resource_id: str,
    master_key: str | bytes | None,
    *,
    now: datetime | None = None,
) -> tuple[str, str]:
    """Sign one REST call.

    Returns ``(authorization_header_value, x_ms_date_header_value)``.
    Raises :class:`InvalidCredentialError` if *master_key* is missing or
    not Base64.
    """
    request = SigningRequest(
        http_verb=verb,
        resource_type=resource_type,
        resource_id=resource_id,
        timestamp=http_date(now),
        master_key=master_key,
    )
    token = SignedToken(signature=compute_signature(request))
    return token.encode(), request.timestamp

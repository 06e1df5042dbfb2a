"""
Time-based one-time passwords (RFC 6238).

Codes are a pure function of (secret, time). The engine holds no timer; the
display ticker in keynest.ticker calls generate_totp once per second.
"""

import base64
import binascii
import datetime
import hashlib
import re
import time
from typing import NamedTuple, Optional

import pyotp

from . import config
from .errors import InvalidSecretError, NotTotpUriError

_WHITESPACE = re.compile(r"\s+")

# pyotp reports every URI problem as ValueError; this one is a secret problem
_NO_SECRET_MESSAGE = "No secret found in URI"


class TotpCode(NamedTuple):
    code: str
    remaining: int
    period: int


class OtpAuthUri(NamedTuple):
    secret: str
    issuer: Optional[str]
    account: Optional[str]


def normalise_secret(secret: str) -> str:
    """Strip all whitespace and uppercase a Base32 secret."""
    return _WHITESPACE.sub("", secret).upper()


def decode_secret(secret: str) -> bytes:
    """
    Decode a Base32 shared secret into key material.

    Missing padding is tolerated, as authenticator apps routinely omit it.

    Raises:
        InvalidSecretError: If the secret is empty or not valid Base32
    """
    if not isinstance(secret, str):
        raise InvalidSecretError("Secret must be a string")
    text = normalise_secret(secret).rstrip("=")
    if not text:
        raise InvalidSecretError("Secret is empty")
    text += "=" * (-len(text) % 8)
    try:
        return base64.b32decode(text)
    except (binascii.Error, ValueError) as e:
        raise InvalidSecretError("Not a valid Base32 secret") from e


def generate_secret() -> str:
    """Generate a new random Base32 secret without padding."""
    return pyotp.random_base32(length=config.TOTP_SECRET_BYTES * 8 // 5)


def make_totp(secret: str, issuer: Optional[str] = None,
              account: Optional[str] = None) -> pyotp.TOTP:
    """
    Build a SHA-1 / 30 s / 6 digit TOTP generator for a secret.

    Raises:
        InvalidSecretError: If the secret cannot be decoded
    """
    decode_secret(secret)
    return pyotp.TOTP(
        normalise_secret(secret).rstrip("="),
        digits=config.TOTP_DIGITS,
        digest=getattr(hashlib, config.TOTP_ALGORITHM.lower()),
        name=account,
        issuer=issuer,
        interval=config.TOTP_PERIOD,
    )


def generate_totp(secret: str, issuer: Optional[str] = None, account: Optional[str] = None,
                  now: Optional[float] = None) -> TotpCode:
    """
    Derive the code for the current time window.

    Args:
        secret: Base32 shared secret, whitespace and case insensitive
        issuer: Display label only, not part of the derivation
        account: Display label only, not part of the derivation
        now: Epoch seconds; defaults to the system clock

    Returns:
        TotpCode with the code, seconds until it rotates (1..period) and the period

    Raises:
        InvalidSecretError: If the secret cannot be decoded
    """
    totp = make_totp(secret, issuer, account)
    if now is None:
        now = time.time()
    epoch = int(now)
    # Aware datetime so pyotp counts windows in UTC, not local time
    code = totp.at(datetime.datetime.fromtimestamp(epoch, tz=datetime.timezone.utc))
    period = totp.interval
    return TotpCode(code=code, remaining=period - (epoch % period), period=period)


def parse_otpauth_uri(uri: str) -> OtpAuthUri:
    """
    Parse an otpauth://totp/ provisioning URI.

    A label of the form ``Issuer:account`` fills both fields. An ``issuer``
    query parameter fills the issuer and must agree with the label's.

    Raises:
        NotTotpUriError: If the URI is not a well-formed otpauth URI of type totp
        InvalidSecretError: If the secret parameter is missing or malformed
    """
    if not isinstance(uri, str):
        raise NotTotpUriError("URI must be a string")
    try:
        otp = pyotp.parse_uri(uri.strip())
    except ValueError as e:
        if str(e) == _NO_SECRET_MESSAGE:
            raise InvalidSecretError("TOTP URI missing secret") from e
        raise NotTotpUriError(f"Not a TOTP URI: {e}") from e

    if not isinstance(otp, pyotp.TOTP):
        raise NotTotpUriError("Not a TOTP URI")
    decode_secret(otp.secret)

    issuer = (otp.issuer or "").strip() or None
    account = (otp.name or "").strip() or None
    return OtpAuthUri(secret=normalise_secret(otp.secret), issuer=issuer, account=account)

"""Base32 secret normalization, validation and generation.

Checks run in a fixed order so the caller sees the most basic problem first:
empty, too short, too long, bad alphabet, bad padding, undecodable.
"""

from __future__ import annotations

import base64
import binascii
import secrets

from otpbot.errors import SecretError, ValidationError

MIN_SECRET_LENGTH = 16
MAX_SECRET_LENGTH = 128
MAX_PADDING = 6
RANDOM_SECRET_BYTES = 20

BASE32_ALPHABET = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ234567=")
_STRIP = str.maketrans("", "", " -_")


def normalize_secret(raw: str) -> str:
    """Drop spaces, hyphens and underscores and upper-case the rest."""
    return raw.translate(_STRIP).upper()


def validate_secret(raw: str | None) -> str:
    """Return the normalized secret or raise ValidationError."""
    secret = normalize_secret((raw or "").strip())

    if not secret:
        raise ValidationError(SecretError.EMPTY_SECRET)
    if len(secret) < MIN_SECRET_LENGTH:
        raise ValidationError(SecretError.TOO_SHORT)
    if len(secret) > MAX_SECRET_LENGTH:
        raise ValidationError(SecretError.TOO_LONG)
    if not set(secret) <= BASE32_ALPHABET:
        raise ValidationError(SecretError.INVALID_ALPHABET)
    if secret.count("=") > MAX_PADDING:
        raise ValidationError(SecretError.INVALID_PADDING)

    try:
        base64.b32decode(secret)
    except (binascii.Error, ValueError):
        raise ValidationError(SecretError.DECODE_FAILURE) from None

    return secret


def generate_random_secret() -> str:
    """20 random bytes, Base32 with standard padding (32 characters)."""
    return base64.b32encode(secrets.token_bytes(RANDOM_SECRET_BYTES)).decode("ascii")

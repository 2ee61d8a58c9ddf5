"""Failure types raised by the core and converted to replies by the dispatcher."""

from __future__ import annotations

import math
from enum import StrEnum


class SecretError(StrEnum):
    EMPTY_SECRET = "empty_secret"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    INVALID_ALPHABET = "invalid_alphabet"
    INVALID_PADDING = "invalid_padding"
    DECODE_FAILURE = "decode_failure"


SECRET_ERROR_MESSAGES: dict[SecretError, str] = {
    SecretError.EMPTY_SECRET: "Secret key cannot be empty.",
    SecretError.TOO_SHORT: "Secret key too short (minimum 16 characters).",
    SecretError.TOO_LONG: "Secret key too long (maximum 128 characters).",
    SecretError.INVALID_ALPHABET: "Invalid Base32 format (only A-Z and 2-7 allowed).",
    SecretError.INVALID_PADDING: "Invalid Base32 padding.",
    SecretError.DECODE_FAILURE: "Failed to decode Base32 secret.",
}


class TwoFactorError(Exception):
    """Base class. ``user_message`` is safe to show to the caller."""

    user_message = "An unexpected error occurred. Please try again later."

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.user_message)


class ValidationError(TwoFactorError):
    """A user-supplied secret was rejected."""

    def __init__(self, reason: SecretError) -> None:
        self.reason = reason
        self.user_message = SECRET_ERROR_MESSAGES[reason]
        super().__init__(self.user_message)


class EngineError(TwoFactorError):
    """Secret, code or QR generation failed internally."""

    user_message = "Failed to generate verification code."

    def __init__(self, detail: str | None = None, *, user_message: str | None = None) -> None:
        if user_message:
            self.user_message = user_message
        super().__init__(detail)


class AuthorizationError(TwoFactorError):
    user_message = "You don't have permission to use this command."


class CooldownError(TwoFactorError):
    def __init__(self, remaining_s: float) -> None:
        self.remaining_s = remaining_s
        # Round up so a caller is never told to wait 0 seconds
        seconds = max(1, math.ceil(remaining_s))
        self.user_message = f"Please wait {seconds} seconds before using this command again."
        super().__init__(self.user_message)

"""TOTP (Time-based One-Time Password) secrets, codes and enrollment artifacts.

Uses pyotp for the RFC 6238 computation and qrcode/Pillow for the QR image.
Parameters are fixed at SHA-1, 6 digits, 30 second period: authenticator apps
assume these, so changing them is an API change, not a setting.
"""

from __future__ import annotations

import hashlib
import io
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from urllib.parse import quote, urlencode

import pyotp
import qrcode
import qrcode.constants
from PIL import Image

from otpbot.auth.codec import generate_random_secret, validate_secret
from otpbot.errors import EngineError, ValidationError
from otpbot.models import CodeResult, SecretResult

logger = logging.getLogger(__name__)

ALGORITHM = "SHA1"
DIGITS = 6
PERIOD_S = 30

DEFAULT_ISSUER = "Discord 2FA Bot"
DEFAULT_ACCOUNT = "User"

# generate_code() only ever sees a bare secret, never the labels it was
# enrolled under, so its URI carries these fixed ones instead.
GENERIC_ISSUER = "Discord-2FA-Bot"
GENERIC_ACCOUNT = "User"

QR_SIZE_PX = 256


def build_provisioning_uri(secret: str, issuer: str, account_name: str) -> str:
    """Get the otpauth:// URI for QR code enrollment.

    Parameters are always spelled out, even where they match the defaults
    apps assume. Base32 padding is dropped from the secret.
    """
    label = f"{quote(issuer, safe='')}:{quote(account_name, safe='')}"
    query = urlencode(
        {
            "secret": secret.rstrip("="),
            "issuer": issuer,
            "algorithm": ALGORITHM,
            "digits": DIGITS,
            "period": PERIOD_S,
        },
        quote_via=quote,
    )
    return f"otpauth://totp/{label}?{query}"


def render_qr(data: str, size: int = QR_SIZE_PX) -> bytes:
    """Encode data as a square PNG with medium error correction."""
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=10, border=4)
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white").get_image()
    img = img.convert("RGB").resize((size, size), Image.Resampling.NEAREST)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


class TOTPEngine:
    """Generates secrets and current codes. Holds no per-secret state."""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        log: logging.Logger | None = None,
        default_issuer: str = DEFAULT_ISSUER,
    ) -> None:
        self._clock = clock
        self._log = log or logger
        self.default_issuer = default_issuer or DEFAULT_ISSUER

    @staticmethod
    def _totp(secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=DIGITS, digest=hashlib.sha1, interval=PERIOD_S)

    def generate_secret(self, issuer: str = "", account_name: str = "") -> SecretResult:
        """Create a fresh random secret with its URI and QR code.

        Unlike generate_code(), a QR failure here is fatal: the QR is what
        the caller asked for.
        """
        issuer = issuer.strip() or self.default_issuer
        account_name = account_name.strip() or DEFAULT_ACCOUNT

        try:
            secret = generate_random_secret()
        except Exception as e:
            self._log.error("Failed to generate TOTP key: %s", e, exc_info=True)
            raise EngineError(str(e), user_message="Failed to generate secret key.") from e

        uri = build_provisioning_uri(secret, issuer, account_name)
        try:
            qr_png = render_qr(uri)
        except Exception as e:
            self._log.error("Failed to generate QR code: %s", e, exc_info=True)
            raise EngineError(str(e), user_message="Failed to generate QR code.") from e

        self._log.info("Generated new TOTP secret (issuer=%s)", issuer)
        return SecretResult(secret=secret, uri=uri, qr_png=qr_png, issuer=issuer, account_name=account_name)

    def generate_code(self, secret: str, for_time: float | None = None) -> CodeResult:
        """Validate a secret and return the code for the current 30s step.

        Raises ValidationError for bad input and EngineError if pyotp fails.
        """
        try:
            secret = validate_secret(secret)
        except ValidationError as e:
            self._log.warning("Invalid secret validation: %s", e)
            raise

        # One instant for both the counter and the remaining time
        now = int(self._clock() if for_time is None else for_time)
        instant = datetime.fromtimestamp(now, tz=UTC)
        try:
            code = self._totp(secret).at(instant)
        except Exception as e:
            self._log.error("Failed to generate TOTP code: %s", e, exc_info=True)
            raise EngineError(str(e)) from e

        remaining = remaining_seconds(now)
        valid_until = instant + timedelta(seconds=remaining)

        uri = build_provisioning_uri(secret, GENERIC_ISSUER, GENERIC_ACCOUNT)
        qr_png: bytes | None
        try:
            qr_png = render_qr(uri)
        except Exception as e:
            self._log.warning("Failed to generate QR code: %s", e)
            qr_png = None

        self._log.debug("Generated TOTP code, valid for %d seconds", remaining)
        return CodeResult(
            code=code,
            remaining_seconds=remaining,
            valid_until=valid_until,
            secret=secret,
            uri=uri,
            qr_png=qr_png,
        )

    def verify_code(
        self,
        secret: str,
        code: str,
        valid_window: int = 1,
        for_time: float | None = None,
    ) -> bool:
        """Verify a TOTP code against a secret (allows +-valid_window steps)."""
        secret = validate_secret(secret)
        now = int(self._clock() if for_time is None else for_time)
        instant = datetime.fromtimestamp(now, tz=UTC)
        return self._totp(secret).verify(code.strip().replace(" ", ""), for_time=instant, valid_window=valid_window)


def remaining_seconds(unix_time: int) -> int:
    """Seconds left in the step containing unix_time, in (0, 30]."""
    remaining = PERIOD_S - (unix_time % PERIOD_S)
    return remaining if remaining > 0 else PERIOD_S

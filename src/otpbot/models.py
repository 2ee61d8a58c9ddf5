"""Pydantic models for data flowing between the bot and the core."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Command(StrEnum):
    GENERATE_CODE = "2fa-code"
    GENERATE_SECRET = "2fa-generate"


# === Request side ===


class CallerIdentity(BaseModel):
    """Who is invoking a command. Built per request, never cached."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str = ""
    role_ids: frozenset[str] = Field(default_factory=frozenset)


class AuthorizationPolicy(BaseModel):
    """Process-wide access policy, loaded once at startup.

    ``allowed_role_ids`` is None when no restriction was configured and an
    empty set when one was configured but listed no usable ids. Both leave
    access open.
    """

    model_config = ConfigDict(frozen=True)

    bypass_user_id: str | None = None
    allowed_role_ids: frozenset[str] | None = None

    @property
    def restricted(self) -> bool:
        return bool(self.allowed_role_ids)


# === Engine output ===


class SecretResult(BaseModel):
    secret: str
    uri: str
    qr_png: bytes
    issuer: str
    account_name: str


class CodeResult(BaseModel):
    code: str
    remaining_seconds: int
    valid_until: datetime
    secret: str
    uri: str
    qr_png: bytes | None = None


# === Dispatcher output ===


class CommandResponse(BaseModel):
    """What the chat adapter renders back to the caller."""

    ok: bool
    command: Command | None = None
    message: str = ""
    code: CodeResult | None = None
    secret: SecretResult | None = None

    @property
    def qr_png(self) -> bytes | None:
        if self.code is not None:
            return self.code.qr_png
        if self.secret is not None:
            return self.secret.qr_png
        return None

    @classmethod
    def failure(cls, message: str, command: Command | None = None) -> CommandResponse:
        return cls(ok=False, command=command, message=message)

"""Tests for mapping Discord interactions and rendering replies."""

from __future__ import annotations

from datetime import UTC, datetime
from types import SimpleNamespace

import discord

from otpbot.bot.discord_client import QR_FILENAME, build_reply, caller_from_interaction
from otpbot.models import CodeResult, Command, CommandResponse, SecretResult

PNG = b"\x89PNG\r\n\x1a\nfake"


def _code_result(qr_png: bytes | None = PNG) -> CodeResult:
    return CodeResult(
        code="123456",
        remaining_seconds=10,
        valid_until=datetime(2023, 11, 14, 22, 13, 30, tzinfo=UTC),
        secret="JBSWY3DPEHPK3PXP",
        uri="otpauth://totp/Discord-2FA-Bot:User?secret=JBSWY3DPEHPK3PXP",
        qr_png=qr_png,
    )


def test_caller_from_guild_member():
    member = SimpleNamespace(id=100, name="alice", roles=[SimpleNamespace(id=1), SimpleNamespace(id=2)])
    caller = caller_from_interaction(SimpleNamespace(user=member))
    assert caller.id == "100"
    assert caller.display_name == "alice"
    assert caller.role_ids == frozenset({"1", "2"})


def test_caller_from_direct_message_is_none():
    user = SimpleNamespace(id=100, name="alice")
    assert caller_from_interaction(SimpleNamespace(user=user)) is None
    assert caller_from_interaction(SimpleNamespace(user=None)) is None


def test_failure_reply_is_plain_ephemeral_text():
    reply = build_reply(CommandResponse.failure("Nope.", Command.GENERATE_CODE))
    assert reply == {"content": "Nope.", "ephemeral": True}


def test_code_reply_with_qr():
    reply = build_reply(CommandResponse(ok=True, command=Command.GENERATE_CODE, code=_code_result()))
    embed = reply["embed"]
    assert reply["ephemeral"] is True
    assert embed.title == "2FA Verification Code"
    assert embed.fields[0].value == "||JBSWY3DPEHPK3PXP||"
    assert embed.fields[1].value == "**`123456`**"
    assert embed.fields[2].value == "10 seconds"
    assert embed.image.url == f"attachment://{QR_FILENAME}"
    assert isinstance(reply["file"], discord.File)
    assert reply["file"].filename == QR_FILENAME


def test_code_reply_without_qr():
    reply = build_reply(CommandResponse(ok=True, command=Command.GENERATE_CODE, code=_code_result(None)))
    assert "file" not in reply
    assert reply["embed"].image.url is None


def test_secret_reply():
    result = SecretResult(
        secret="A" * 32,
        uri="otpauth://totp/Acme:bob?secret=" + "A" * 32,
        qr_png=PNG,
        issuer="Acme",
        account_name="bob",
    )
    reply = build_reply(CommandResponse(ok=True, command=Command.GENERATE_SECRET, secret=result))
    embed = reply["embed"]
    assert embed.title == "New 2FA Secret Generated"
    assert [f.value for f in embed.fields[1:3]] == ["Acme", "bob"]
    assert reply["file"].filename == QR_FILENAME

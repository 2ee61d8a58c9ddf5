"""Tests for the command dispatcher (request boundary)."""

from __future__ import annotations

import pytest

from otpbot.auth.permissions import PermissionChecker
from otpbot.auth.totp import TOTPEngine
from otpbot.bot.handlers import CommandHandler
from otpbot.cooldown import CooldownManager
from otpbot.models import AuthorizationPolicy, CallerIdentity, Command

SECRET = "JBSWY3DPEHPK3PXP"


@pytest.fixture
def handler(clock):
    policy = AuthorizationPolicy(bypass_user_id="dev", allowed_role_ids=frozenset({"staff"}))
    return CommandHandler(
        engine=TOTPEngine(clock=clock),
        permissions=PermissionChecker(policy),
        cooldowns=CooldownManager(5, clock=clock),
    )


def _staff(user_id: str = "100") -> CallerIdentity:
    return CallerIdentity(id=user_id, display_name="alice", role_ids=frozenset({"staff"}))


def test_generate_code_success(handler):
    response = handler.dispatch(_staff(), "2fa-code", {"secret": " jbsw-y3dp_ehpk3pxp "})
    assert response.ok
    assert response.command is Command.GENERATE_CODE
    assert response.code.secret == SECRET
    assert response.code.remaining_seconds == 10
    assert response.qr_png is not None


def test_generate_secret_defaults_account_to_caller(handler):
    response = handler.dispatch(_staff(), Command.GENERATE_SECRET, {"issuer": None, "account": None})
    assert response.ok
    assert response.secret.issuer == "Discord 2FA Bot"
    assert response.secret.account_name == "alice"


def test_generate_secret_uses_options(handler):
    response = handler.dispatch(_staff(), Command.GENERATE_SECRET, {"issuer": " Acme ", "account": "bob"})
    assert response.secret.issuer == "Acme"
    assert response.secret.account_name == "bob"


def test_missing_caller(handler):
    response = handler.dispatch(None, "2fa-code", {"secret": SECRET})
    assert not response.ok
    assert response.message == "Unable to verify user information."


def test_unknown_command(handler):
    response = handler.dispatch(_staff(), "2fa-nope")
    assert not response.ok
    assert response.message == "Unknown command."


def test_unauthorized_caller(handler, caplog):
    outsider = CallerIdentity(id="200", display_name="mallory", role_ids=frozenset({"guest"}))
    response = handler.dispatch(outsider, "2fa-code", {"secret": SECRET})
    assert not response.ok
    assert response.message == "You don't have permission to use this command."
    assert "Unauthorized access attempt" in caplog.text
    assert not handler.cooldowns.is_on_cooldown("200")


def test_bypass_user_without_roles(handler):
    response = handler.dispatch(CallerIdentity(id="dev"), "2fa-code", {"secret": SECRET})
    assert response.ok


def test_cooldown_blocks_second_request(handler, clock):
    assert handler.dispatch(_staff(), "2fa-code", {"secret": SECRET}).ok

    clock.advance(2.5)
    response = handler.dispatch(_staff(), "2fa-generate")
    assert not response.ok
    assert response.message == "Please wait 3 seconds before using this command again."

    clock.advance(2.5)
    assert handler.dispatch(_staff(), "2fa-code", {"secret": SECRET}).ok


def test_cooldown_is_per_user(handler):
    assert handler.dispatch(_staff("100"), "2fa-code", {"secret": SECRET}).ok
    assert handler.dispatch(_staff("101"), "2fa-code", {"secret": SECRET}).ok


@pytest.mark.parametrize(
    ("options", "message"),
    [
        ({}, "Please provide a 2FA secret key."),
        ({"secret": "   "}, "Secret key cannot be empty."),
        ({"secret": "A" * 257}, "Secret key is too long."),
        ({"secret": "ABCDEFGHIJ"}, "Secret key too short (minimum 16 characters)."),
        ({"secret": "JBSWY3DPEHPK3PX1"}, "Invalid Base32 format (only A-Z and 2-7 allowed)."),
    ],
)
def test_bad_secret_input(handler, options, message):
    response = handler.dispatch(_staff(), "2fa-code", options)
    assert not response.ok
    assert response.message == message
    # Failed requests do not start a cooldown
    assert not handler.cooldowns.is_on_cooldown("100")


def test_engine_failure_gives_generic_message(handler, monkeypatch):
    def broken(self, for_time, counter_offset=0):
        raise RuntimeError("hmac exploded")

    monkeypatch.setattr("pyotp.TOTP.at", broken)
    response = handler.dispatch(_staff(), "2fa-code", {"secret": SECRET})
    assert not response.ok
    assert response.message == "Failed to generate verification code."


def test_secret_generation_failure(handler, monkeypatch):
    def broken(_data):
        raise RuntimeError("no encoder")

    monkeypatch.setattr("otpbot.auth.totp.render_qr", broken)
    response = handler.dispatch(_staff(), "2fa-generate")
    assert not response.ok
    assert response.message == "Failed to generate secret key."


def test_unexpected_error_is_contained(handler, monkeypatch, caplog):
    def broken(*args, **kwargs):
        raise KeyError("surprise")

    monkeypatch.setattr(handler.engine, "generate_code", broken)
    response = handler.dispatch(_staff(), "2fa-code", {"secret": SECRET})
    assert not response.ok
    assert response.message == "An unexpected error occurred. Please try again later."
    assert "Unhandled error" in caplog.text

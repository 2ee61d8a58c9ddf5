"""Command dispatch: the request boundary between the chat adapter and the core.

Every command runs the same chain: caller check, permission gate, cooldown,
then the command itself. Failures come back as a CommandResponse with a
message the adapter can show as-is; nothing raised here escapes dispatch().
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from otpbot.auth.permissions import PermissionChecker
from otpbot.auth.totp import TOTPEngine
from otpbot.cooldown import CooldownManager
from otpbot.errors import AuthorizationError, CooldownError, EngineError, TwoFactorError
from otpbot.models import CallerIdentity, Command, CommandResponse

logger = logging.getLogger(__name__)

MAX_RAW_SECRET_LENGTH = 256

UNEXPECTED_ERROR = "An unexpected error occurred. Please try again later."
UNKNOWN_CALLER = "Unable to verify user information."


class CommandHandler:
    def __init__(
        self,
        engine: TOTPEngine,
        permissions: PermissionChecker,
        cooldowns: CooldownManager,
        log: logging.Logger | None = None,
    ) -> None:
        self.engine = engine
        self.permissions = permissions
        self.cooldowns = cooldowns
        self._log = log or logger

    def dispatch(
        self,
        caller: CallerIdentity | None,
        command: str,
        options: Mapping[str, str | None] | None = None,
    ) -> CommandResponse:
        """Run one command for one caller and always return a response."""
        options = options or {}

        try:
            cmd = Command(command)
        except ValueError:
            self._log.warning("Unknown command: %s", command)
            return CommandResponse.failure("Unknown command.")

        if caller is None or not caller.id:
            return CommandResponse.failure(UNKNOWN_CALLER, cmd)

        try:
            self._guard(caller, cmd)
            if cmd is Command.GENERATE_CODE:
                response = self._generate_code(caller, options)
            else:
                response = self._generate_secret(caller, options)
        except TwoFactorError as e:
            return CommandResponse.failure(e.user_message, cmd)
        except Exception:
            self._log.error("Unhandled error in %s handler for user %s", cmd, caller.id, exc_info=True)
            return CommandResponse.failure(UNEXPECTED_ERROR, cmd)

        if response.ok:
            self.cooldowns.set_cooldown(caller.id)
        return response

    def _guard(self, caller: CallerIdentity, cmd: Command) -> None:
        if not self.permissions.is_authorized(caller):
            self.permissions.log_unauthorized(caller, cmd)
            raise AuthorizationError()

        if self.cooldowns.is_on_cooldown(caller.id):
            raise CooldownError(self.cooldowns.remaining(caller.id))

    def _generate_code(self, caller: CallerIdentity, options: Mapping[str, str | None]) -> CommandResponse:
        raw = options.get("secret")
        if raw is None:
            return CommandResponse.failure("Please provide a 2FA secret key.", Command.GENERATE_CODE)

        secret = raw.strip()
        if not secret:
            return CommandResponse.failure("Secret key cannot be empty.", Command.GENERATE_CODE)
        if len(secret) > MAX_RAW_SECRET_LENGTH:
            return CommandResponse.failure("Secret key is too long.", Command.GENERATE_CODE)

        try:
            result = self.engine.generate_code(secret)
        except EngineError:
            self._log.warning("TOTP code generation failed for user %s", caller.id)
            raise

        self._log.info("2FA code generated for user %s (%s)", caller.display_name, caller.id)
        return CommandResponse(ok=True, command=Command.GENERATE_CODE, code=result)

    def _generate_secret(self, caller: CallerIdentity, options: Mapping[str, str | None]) -> CommandResponse:
        issuer = (options.get("issuer") or "").strip()
        account = (options.get("account") or "").strip() or caller.display_name

        try:
            result = self.engine.generate_secret(issuer, account)
        except EngineError as e:
            self._log.error("Secret generation failed for user %s: %s", caller.id, e)
            raise EngineError(str(e), user_message="Failed to generate secret key.") from e

        self._log.info("2FA secret generated for user %s (%s)", caller.display_name, caller.id)
        return CommandResponse(ok=True, command=Command.GENERATE_SECRET, secret=result)

"""Role/user gate in front of every command."""

from __future__ import annotations

import logging

from otpbot.models import AuthorizationPolicy, CallerIdentity

logger = logging.getLogger(__name__)


class PermissionChecker:
    """Decides whether a caller may run a protected command.

    Order: unknown caller is denied, the bypass user is always allowed, an
    unrestricted policy allows everyone, otherwise the caller needs at least
    one allowed role.
    """

    def __init__(self, policy: AuthorizationPolicy, log: logging.Logger | None = None) -> None:
        self.policy = policy
        self._log = log or logger

    def is_authorized(self, caller: CallerIdentity | None) -> bool:
        if caller is None or not caller.id:
            self._log.warning("No member or user information for permission check")
            return False

        if self.policy.bypass_user_id and caller.id == self.policy.bypass_user_id:
            self._log.debug("Dev user access granted: %s", caller.id)
            return True

        if not self.policy.restricted:
            self._log.debug("No role restrictions configured, allowing access")
            return True

        user_roles = {role for role in caller.role_ids if role}
        if not user_roles:
            self._log.debug("User has no roles: %s", caller.id)
            return False

        matched = user_roles & self.policy.allowed_role_ids
        if matched:
            self._log.debug("User %s has allowed role %s", caller.id, sorted(matched)[0])
            return True

        self._log.warning("Access denied for user %s: missing required roles", caller.id)
        return False

    def log_unauthorized(self, caller: CallerIdentity | None, command: str) -> None:
        self._log.warning(
            "Unauthorized access attempt: user_id=%s username=%s command=%s",
            caller.id if caller else None,
            caller.display_name if caller else None,
            command,
        )

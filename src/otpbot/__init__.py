"""otpbot — TOTP codes and secrets on demand through Discord slash commands."""

__version__ = "0.1.0"

"""CLI entry point for otpbot."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.console import Console

from otpbot.errors import TwoFactorError

console = Console()


def _engine():
    from otpbot.auth.totp import TOTPEngine
    from otpbot.config import settings

    return TOTPEngine(default_issuer=settings.default_issuer)


@click.group()
def main() -> None:
    """otpbot — TOTP codes and secrets over Discord slash commands."""


@main.command()
def run() -> None:
    """Start the Discord bot."""
    from otpbot.auth.permissions import PermissionChecker
    from otpbot.auth.totp import TOTPEngine
    from otpbot.bot.discord_client import TwoFactorBot
    from otpbot.bot.handlers import CommandHandler
    from otpbot.config import settings
    from otpbot.cooldown import CooldownCleaner, CooldownManager
    from otpbot.logging_setup import configure_logging

    if not settings.discord_bot_token:
        console.print("[red]DISCORD_BOT_TOKEN environment variable is required[/red]")
        sys.exit(1)

    configure_logging(settings.log_level)

    cooldowns = CooldownManager(settings.command_cooldown)
    handler = CommandHandler(
        engine=TOTPEngine(default_issuer=settings.default_issuer),
        permissions=PermissionChecker(settings.policy()),
        cooldowns=cooldowns,
    )
    cleaner = CooldownCleaner(cooldowns, interval_s=settings.cooldown_cleanup_interval)
    bot = TwoFactorBot(handler, cleaner, guild_id=settings.guild_id)

    console.print("[bold]Starting 2FA Discord Bot...[/bold] Press Ctrl+C to exit.")
    bot.run(settings.discord_bot_token, log_handler=None)


@main.command()
def status() -> None:
    """Show effective configuration."""
    from otpbot.config import settings

    policy = settings.policy()
    token = settings.discord_bot_token
    roles = policy.allowed_role_ids

    console.print("[bold]otpbot configuration[/bold]")
    console.print(f"  Bot token: {'set (…' + token[-4:] + ')' if token else '[red]missing[/red]'}")
    console.print(f"  Guild: {settings.guild_id or 'global commands'}")
    console.print(f"  Dev user: {policy.bypass_user_id or '—'}")
    console.print(f"  Allowed roles: {', '.join(sorted(roles)) if roles else 'no restriction'}")
    console.print(f"  Cooldown: {settings.command_cooldown}s (cleanup every {settings.cooldown_cleanup_interval}s)")
    console.print(f"  Default issuer: {settings.default_issuer}")
    console.print(f"  Log level: {settings.log_level}")


@main.command()
@click.argument("secret")
def code(secret: str) -> None:
    """Print the current code for SECRET."""
    try:
        result = _engine().generate_code(secret)
    except TwoFactorError as e:
        console.print(f"[red]{e.user_message}[/red]")
        sys.exit(1)
    console.print(f"[bold green]{result.code}[/bold green]  valid for {result.remaining_seconds}s")


@main.command()
@click.option("--issuer", default="", help="Service name shown in the authenticator app")
@click.option("--account", default="", help="Account name shown in the authenticator app")
@click.option("--qr", "qr_path", type=click.Path(dir_okay=False, path_type=Path), help="Write the QR code PNG here")
def generate(issuer: str, account: str, qr_path: Path | None) -> None:
    """Generate a new secret with its provisioning URI."""
    try:
        result = _engine().generate_secret(issuer, account)
    except TwoFactorError as e:
        console.print(f"[red]{e.user_message}[/red]")
        sys.exit(1)

    console.print(f"Secret: [bold]{result.secret}[/bold]")
    console.print(f"URI:    {result.uri}", soft_wrap=True)
    if qr_path:
        qr_path.write_bytes(result.qr_png)
        console.print(f"QR code written to {qr_path}")


@main.command()
@click.argument("secret")
@click.argument("otp")
def verify(secret: str, otp: str) -> None:
    """Check OTP against SECRET (one step of clock drift allowed)."""
    try:
        ok = _engine().verify_code(secret, otp)
    except TwoFactorError as e:
        console.print(f"[red]{e.user_message}[/red]")
        sys.exit(1)

    if ok:
        console.print("[green]Code is valid[/green]")
    else:
        console.print("[red]Code is not valid[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""Discord client — slash command registration and reply rendering.

Commands:
    /2fa-code secret:<base32>                 Current code for a secret
    /2fa-generate [issuer:<name>] [account:<name>]   New secret + QR code

All replies are ephemeral. The actual work happens in CommandHandler, run on
a worker thread so the gateway loop is never blocked.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Any

import discord
from discord import app_commands

from otpbot.bot.handlers import CommandHandler
from otpbot.cooldown import CooldownCleaner
from otpbot.models import CallerIdentity, CodeResult, Command, CommandResponse, SecretResult

logger = logging.getLogger(__name__)

QR_FILENAME = "qrcode.png"
CODE_COLOR = 0x32AE4D
SECRET_COLOR = 0x4CAF50


def caller_from_interaction(interaction: Any) -> CallerIdentity | None:
    """Build a CallerIdentity from a guild interaction; None outside a guild."""
    user = getattr(interaction, "user", None)
    roles = getattr(user, "roles", None)
    if user is None or roles is None:
        return None
    return CallerIdentity(
        id=str(user.id),
        display_name=user.name,
        role_ids=frozenset(str(role.id) for role in roles),
    )


def build_code_embed(result: CodeResult) -> discord.Embed:
    embed = discord.Embed(title="2FA Verification Code", color=CODE_COLOR, timestamp=discord.utils.utcnow())
    embed.add_field(name="Secret Key", value=f"||{result.secret}||", inline=False)
    embed.add_field(name="Current Code", value=f"**`{result.code}`**", inline=True)
    embed.add_field(name="Remaining Time", value=f"{result.remaining_seconds} seconds", inline=True)
    embed.add_field(
        name="Security Notice",
        value="This code is valid for 30 seconds. Do not share it with anyone.",
        inline=False,
    )
    embed.set_footer(text="Code refreshes every 30 seconds")
    if result.qr_png:
        embed.set_image(url=f"attachment://{QR_FILENAME}")
    return embed


def build_secret_embed(result: SecretResult) -> discord.Embed:
    embed = discord.Embed(title="New 2FA Secret Generated", color=SECRET_COLOR, timestamp=discord.utils.utcnow())
    embed.add_field(name="Secret Key", value=f"||{result.secret}||", inline=False)
    embed.add_field(name="Issuer", value=result.issuer, inline=True)
    embed.add_field(name="Account", value=result.account_name, inline=True)
    embed.add_field(
        name="Setup Instructions",
        value=(
            "1. Scan the QR code with your authenticator app\n"
            "2. Or manually enter the secret key\n"
            "3. Use `/2fa-code` to generate verification codes"
        ),
        inline=False,
    )
    embed.set_footer(text="Keep your secret key safe and private")
    embed.set_image(url=f"attachment://{QR_FILENAME}")
    return embed


def build_reply(response: CommandResponse) -> dict[str, Any]:
    """Keyword arguments for InteractionResponse.send_message()."""
    if not response.ok:
        return {"content": response.message, "ephemeral": True}

    if response.code is not None:
        embed = build_code_embed(response.code)
    elif response.secret is not None:
        embed = build_secret_embed(response.secret)
    else:
        return {"content": response.message or "Done.", "ephemeral": True}

    reply: dict[str, Any] = {"embed": embed, "ephemeral": True}
    if response.qr_png:
        reply["file"] = discord.File(io.BytesIO(response.qr_png), filename=QR_FILENAME)
    return reply


class TwoFactorBot(discord.Client):
    def __init__(self, handler: CommandHandler, cleaner: CooldownCleaner, guild_id: str = "") -> None:
        intents = discord.Intents.none()
        intents.guilds = True
        super().__init__(intents=intents)

        self.handler = handler
        self.cleaner = cleaner
        self.guild = discord.Object(id=int(guild_id)) if guild_id else None
        self.tree = app_commands.CommandTree(self)
        self._register_commands()

    def _register_commands(self) -> None:
        @self.tree.command(
            name=Command.GENERATE_CODE.value,
            description="Generate a 2FA verification code from your secret key",
        )
        @app_commands.describe(secret="Your 2FA secret key (Base32 format)")
        async def code_command(interaction: discord.Interaction, secret: str) -> None:
            await self.respond(interaction, Command.GENERATE_CODE, {"secret": secret})

        @self.tree.command(
            name=Command.GENERATE_SECRET.value,
            description="Generate a new 2FA secret key with QR code",
        )
        @app_commands.describe(
            issuer="Service name (optional, defaults to 'Discord 2FA Bot')",
            account="Account name (optional, defaults to your username)",
        )
        async def generate_command(
            interaction: discord.Interaction,
            issuer: str | None = None,
            account: str | None = None,
        ) -> None:
            await self.respond(interaction, Command.GENERATE_SECRET, {"issuer": issuer, "account": account})

    async def setup_hook(self) -> None:
        if self.guild is not None:
            self.tree.copy_global_to(guild=self.guild)
            synced = await self.tree.sync(guild=self.guild)
        else:
            synced = await self.tree.sync()
        for cmd in synced:
            logger.info("Registered command: %s", cmd.name)
        self.cleaner.start()

    async def on_ready(self) -> None:
        logger.info("Bot is ready! Logged in as: %s", self.user)

    async def close(self) -> None:
        logger.info("Shutting down bot...")
        self.cleaner.stop()
        await super().close()

    async def respond(self, interaction: discord.Interaction, command: Command, options: dict[str, str | None]) -> None:
        caller = caller_from_interaction(interaction)
        response = await asyncio.to_thread(self.handler.dispatch, caller, command, options)
        try:
            await interaction.response.send_message(**build_reply(response))
        except discord.HTTPException:
            logger.error("Failed to respond to %s interaction", command, exc_info=True)

"""Command listener Cog.

Turns prefixed text messages into router dispatches: guild messages go to
the guild command table, direct messages to the DM table.
"""

import discord
from discord.ext import commands

from bouncer.command.command_router import CommandContext, CommandRouter, strip_prefix
from bouncer.datatypes.discord_datatypes import GuildID, UserID
from bouncer.util.logger import get_logger

logger = get_logger("command_listener_cog")


def can_moderate(author) -> bool:
    """True when a guild member may run the moderator commands."""
    if not isinstance(author, discord.Member):
        return False
    permissions = author.guild_permissions
    return bool(permissions.administrator or permissions.kick_members)


class CommandListenerCog(commands.Cog):
    """Cog responsible for reading text commands."""

    def __init__(self, discord_bot_instance, router: CommandRouter, prefix: str):
        self.bot = discord_bot_instance
        self.router = router
        self.prefix = prefix
        logger.info("Command listener cog loaded (prefix %r)", prefix)

    def _build_context(self, message: discord.Message) -> CommandContext:
        async def reply(content: str) -> None:
            await message.channel.send(content)

        return CommandContext(
            author_id=UserID.from_model(message.author),
            author_tag=str(message.author),
            reply=reply,
            guild_id=GuildID.from_model(message.guild) if message.guild else None,
            can_moderate=message.guild is not None and can_moderate(message.author),
        )

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return

        line = strip_prefix(message.content or "", self.prefix)
        if line is None:
            # Direct messages may omit the prefix
            if message.guild is not None:
                return
            line = (message.content or "").strip()

        await self.router.dispatch(line, self._build_context(message))


def setup(discord_bot_instance, router: CommandRouter, prefix: str):
    discord_bot_instance.add_cog(CommandListenerCog(discord_bot_instance, router, prefix))

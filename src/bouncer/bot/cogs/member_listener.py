"""Member listener Cog: runs the join pipeline for every new member."""

import discord
from discord.ext import commands

from bouncer.datatypes.discord_datatypes import GuildID, UserID
from bouncer.moderation.moderation_workflow import ModerationWorkflow
from bouncer.util.logger import get_logger

logger = get_logger("member_listener_cog")


class MemberListenerCog(commands.Cog):
    """Cog that hands joining members to the moderation workflow."""

    def __init__(self, discord_bot_instance, workflow: ModerationWorkflow):
        self.bot = discord_bot_instance
        self.workflow = workflow
        logger.info("Member listener cog loaded")

    @commands.Cog.listener(name="on_member_join")
    async def on_member_join(self, member: discord.Member) -> None:
        """Score the member; a failure here must not affect later joins."""
        try:
            await self.workflow.on_join(GuildID.from_model(member.guild), UserID.from_model(member))
        except Exception:
            logger.exception("[MEMBER LISTENER] Join processing failed for %s in guild %s", member, member.guild.id)


def setup(discord_bot_instance, workflow: ModerationWorkflow):
    discord_bot_instance.add_cog(MemberListenerCog(discord_bot_instance, workflow))

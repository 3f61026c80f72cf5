"""
Access to the chat platform for the moderation core.

:class:`PlatformGateway` is the capability the workflow and the ledger depend
on; :class:`DiscordGateway` implements it over a py-cord client. Every method
translates Discord errors into ``None`` / ``False`` so callers can answer with
"resource unavailable" instead of handling exceptions.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Union

import discord

from bouncer.datatypes.discord_datatypes import GuildID, UserID
from bouncer.datatypes.moderation_datatypes import MemberProfile
from bouncer.util.logger import get_logger

logger = get_logger("discord_gateway")


class PlatformGateway(Protocol):
    async def has_guild(self, guild_id: GuildID) -> bool: ...

    async def is_member(self, guild_id: GuildID, user_id: UserID) -> bool: ...

    async def fetch_profile(self, guild_id: GuildID, user_id: UserID) -> Optional[MemberProfile]: ...

    async def fetch_profiles(self, guild_id: GuildID) -> Optional[List[MemberProfile]]: ...

    async def send_direct_message(self, user_id: UserID, content: str) -> bool: ...

    async def quarantine(self, guild_id: GuildID, user_id: UserID, reason: str) -> bool: ...

    async def lift_quarantine(self, guild_id: GuildID, user_id: UserID, reason: str) -> bool: ...

    async def remove_member(self, guild_id: GuildID, user_id: UserID, reason: str) -> bool: ...


def build_profile(member: Union[discord.Member, discord.User]) -> MemberProfile:
    """Snapshot the parts of a Discord member the flag rules look at."""
    roles = getattr(member, "roles", None) or []
    # ``roles`` always contains @everyone
    role_count = max(0, len(roles) - 1)
    display_name = member.display_name or member.name
    has_display_name = bool(getattr(member, "global_name", None) or getattr(member, "nick", None))

    return MemberProfile(
        user_id=UserID.from_model(member),
        tag=str(member),
        username=member.name,
        display_name=display_name,
        created_at=member.created_at,
        is_bot=bool(member.bot),
        has_default_avatar=member.avatar is None,
        has_display_name=has_display_name,
        role_count=role_count,
    )


class DiscordGateway:
    """:class:`PlatformGateway` over a connected py-cord client."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    async def _resolve_guild(self, guild_id: GuildID) -> Optional[discord.Guild]:
        guild = self.client.get_guild(guild_id.to_int())
        if guild is not None:
            return guild
        try:
            return await self.client.fetch_guild(guild_id.to_int())
        except (discord.NotFound, discord.Forbidden):
            return None
        except discord.HTTPException as exc:
            logger.warning("[GATEWAY] Failed to fetch guild %s: %s", guild_id, exc)
            return None

    async def _resolve_member(self, guild: discord.Guild, user_id: UserID) -> Optional[discord.Member]:
        member = guild.get_member(user_id.to_int())
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id.to_int())
        except (discord.NotFound, discord.Forbidden):
            return None
        except discord.HTTPException as exc:
            logger.warning("[GATEWAY] Failed to fetch member %s of guild %s: %s", user_id, guild.id, exc)
            return None

    async def has_guild(self, guild_id: GuildID) -> bool:
        return await self._resolve_guild(guild_id) is not None

    async def is_member(self, guild_id: GuildID, user_id: UserID) -> bool:
        """True while the user is in the guild or sits on its ban list."""
        guild = await self._resolve_guild(guild_id)
        if guild is None:
            return False
        if await self._resolve_member(guild, user_id) is not None:
            return True
        try:
            await guild.fetch_ban(discord.Object(id=user_id.to_int()))
            return True
        except (discord.NotFound, discord.Forbidden):
            return False
        except discord.HTTPException as exc:
            logger.warning("[GATEWAY] Failed to fetch ban of %s in guild %s: %s", user_id, guild_id, exc)
            return False

    async def fetch_profile(self, guild_id: GuildID, user_id: UserID) -> Optional[MemberProfile]:
        guild = await self._resolve_guild(guild_id)
        if guild is None:
            return None
        member = await self._resolve_member(guild, user_id)
        return build_profile(member) if member is not None else None

    async def fetch_profiles(self, guild_id: GuildID) -> Optional[List[MemberProfile]]:
        guild = await self._resolve_guild(guild_id)
        if guild is None:
            return None
        try:
            members = [member async for member in guild.fetch_members(limit=None)]
        except discord.HTTPException as exc:
            logger.warning("[GATEWAY] Failed to list members of guild %s: %s", guild_id, exc)
            return None
        return [build_profile(member) for member in members]

    async def send_direct_message(self, user_id: UserID, content: str) -> bool:
        user = self.client.get_user(user_id.to_int())
        try:
            if user is None:
                user = await self.client.fetch_user(user_id.to_int())
            await user.send(content)
            return True
        except discord.HTTPException as exc:
            logger.warning("[GATEWAY] Could not DM user %s: %s", user_id, exc)
            return False

    async def quarantine(self, guild_id: GuildID, user_id: UserID, reason: str) -> bool:
        guild = await self._resolve_guild(guild_id)
        if guild is None:
            return False
        try:
            await guild.ban(discord.Object(id=user_id.to_int()), reason=reason)
            return True
        except discord.HTTPException as exc:
            logger.warning("[GATEWAY] Could not ban %s in guild %s: %s", user_id, guild_id, exc)
            return False

    async def lift_quarantine(self, guild_id: GuildID, user_id: UserID, reason: str) -> bool:
        guild = await self._resolve_guild(guild_id)
        if guild is None:
            return False
        try:
            await guild.unban(discord.Object(id=user_id.to_int()), reason=reason)
            return True
        except discord.NotFound:
            # Not banned any more; nothing to lift
            return True
        except discord.HTTPException as exc:
            logger.warning("[GATEWAY] Could not unban %s in guild %s: %s", user_id, guild_id, exc)
            return False

    async def remove_member(self, guild_id: GuildID, user_id: UserID, reason: str) -> bool:
        """Kick the user if they are still a member; False when they are gone or the kick fails."""
        guild = await self._resolve_guild(guild_id)
        if guild is None:
            return False
        member = await self._resolve_member(guild, user_id)
        if member is None:
            return False
        try:
            await member.kick(reason=reason)
            return True
        except discord.HTTPException as exc:
            logger.warning("[GATEWAY] Could not kick %s from guild %s: %s", user_id, guild_id, exc)
            return False

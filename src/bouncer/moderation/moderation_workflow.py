"""
Moderation workflow: from a member joining to their release.

- ``on_join`` scores a joining member and, at or above the join threshold,
  issues a verification record, sends the user their verification link and
  bans them until they redeem it.
- ``prepare`` / ``list`` / ``spare`` / ``kick`` let moderators triage the
  members already in the guild through the suspect roster.
- ``verify`` redeems a code sent by direct message.

A user's state is implicit: a pending verification record means quarantined,
a whitelist entry means cleared for good.
"""

from __future__ import annotations

from typing import List, Optional

from bouncer.bot.discord_gateway import PlatformGateway
from bouncer.command.command_router import CommandContext, CommandRouter, CommandScope
from bouncer.configuration.app_configuration import AppConfig
from bouncer.datatypes.discord_datatypes import GuildID, UserID
from bouncer.datatypes.moderation_datatypes import MemberProfile, RedeemOutcome, VerificationRecord
from bouncer.moderation import flag_engine
from bouncer.moderation.flag_engine import ScoringPolicy
from bouncer.moderation.suspect_roster import SuspectRoster, name_prescreen, parse_indices
from bouncer.moderation.verification_ledger import VerificationLedger
from bouncer.moderation.whitelist import Whitelist
from bouncer.util.logger import get_logger

logger = get_logger("moderation_workflow")

QUARANTINE_REASON = "Flagged as suspicious on join; pending verification"
KICK_REASON = "Removed from suspect list by a moderator"

EMPTY_ROSTER_REPLY = "The suspect list is empty, run `{prefix} prepare` first."
NO_PERMISSION_REPLY = "You do not have permission to use this command."


class ModerationWorkflow:
    """Coordinates scoring, the suspect roster and the verification ledger."""

    def __init__(
        self,
        config: AppConfig,
        gateway: PlatformGateway,
        ledger: VerificationLedger,
        whitelist: Whitelist,
        roster: Optional[SuspectRoster] = None,
    ) -> None:
        self.config = config
        self.gateway = gateway
        self.ledger = ledger
        self.whitelist = whitelist
        self.policy = ScoringPolicy.from_config(config)
        self.roster = roster or SuspectRoster(self.policy)

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def register_commands(self, router: CommandRouter) -> None:
        router.register(CommandScope.GUILD, "ping", self.ping)
        router.register(CommandScope.GUILD, "prepare", self.prepare)
        router.register(CommandScope.GUILD, "list", self.list_suspects)
        router.register(CommandScope.GUILD, "spare", self.spare)
        router.register(CommandScope.GUILD, "kick", self.kick)
        router.register(CommandScope.DIRECT, "ping", self.ping)
        router.register(CommandScope.DIRECT, "verify", self.verify)

    def verification_url(self, record: VerificationRecord) -> str:
        return f"{self.config.verification_base_url}/verify/{record.ban_id}"

    def _empty_roster_reply(self) -> str:
        return EMPTY_ROSTER_REPLY.format(prefix=self.config.command_prefix)

    # ------------------------------------------------------------------
    # Member join
    # ------------------------------------------------------------------

    async def on_join(self, guild_id: GuildID, user_id: UserID) -> Optional[VerificationRecord]:
        """Score a joining member and quarantine them when they reach the join threshold.

        Returns the issued record, or ``None`` when the member was let in.
        """
        profile = await self.gateway.fetch_profile(guild_id, user_id)
        if profile is None:
            logger.warning("[WORKFLOW] Could not fetch profile of joining user %s in guild %s", user_id, guild_id)
            return None

        if profile.is_bot:
            return None

        if await self.whitelist.contains(user_id):
            logger.debug("[WORKFLOW] %s is whitelisted; skipping join checks", profile.tag)
            return None

        flags, score = flag_engine.evaluate(profile, self.policy)
        if score < self.config.join_threshold:
            logger.debug("[WORKFLOW] %s joined guild %s with score %d", profile.tag, guild_id, score)
            return None

        record = await self.ledger.issue(user_id, profile.tag, guild_id)
        notice = (
            "You have been banned from the server because your account looks suspicious "
            f"({', '.join(sorted(str(flag) for flag in flags))}).\n"
            f"If this is a mistake, verify yourself at {self.verification_url(record)} "
            "and then send me `verify <code>` here."
        )
        # DM first: once banned the user no longer shares a guild with the bot
        if not await self.gateway.send_direct_message(user_id, notice):
            logger.warning("[WORKFLOW] Quarantine notice for %s could not be delivered", profile.tag)

        if await self.gateway.quarantine(guild_id, user_id, reason=QUARANTINE_REASON):
            logger.info("[WORKFLOW] Quarantined %s in guild %s (score %d)", profile.tag, guild_id, score)
        else:
            logger.warning("[WORKFLOW] Failed to quarantine %s in guild %s", profile.tag, guild_id)
        return record

    # ------------------------------------------------------------------
    # Guild commands
    # ------------------------------------------------------------------

    async def ping(self, context: CommandContext, tokens: List[str]) -> None:
        await context.reply("pong")

    async def _require_moderator(self, context: CommandContext) -> bool:
        if context.can_moderate:
            return True
        logger.debug("[WORKFLOW] %s used a moderator command without permission", context.author_id)
        await context.reply(NO_PERMISSION_REPLY)
        return False

    async def prepare(self, context: CommandContext, tokens: List[str]) -> None:
        """``prepare [threshold]``: rebuild the suspect roster from the current member list."""
        if not await self._require_moderator(context):
            return
        assert context.guild_id is not None

        threshold = self.config.prepare_threshold
        if len(tokens) > 1:
            try:
                threshold = int(tokens[1])
            except ValueError:
                await context.reply(f"`{tokens[1]}` is not a valid threshold; expected a whole number.")
                return

        profiles = await self.gateway.fetch_profiles(context.guild_id)
        if profiles is None:
            await context.reply("Could not fetch the member list of this server.")
            return

        screenable: List[MemberProfile] = []
        for profile in profiles:
            if not await self.whitelist.contains(profile.user_id):
                screenable.append(profile)

        candidates = self.roster.prepare(
            context.guild_id,
            screenable,
            threshold,
            prescreen=name_prescreen(self.config.prescreen_name_pattern),
        )
        await context.reply(
            f"Found {len(candidates)} suspect(s) with a score of at least {threshold}. "
            f"Run `{self.config.command_prefix} list` to review them."
        )

    async def list_suspects(self, context: CommandContext, tokens: List[str]) -> None:
        """``list``: show the roster with the indices ``spare`` expects."""
        if not await self._require_moderator(context):
            return
        assert context.guild_id is not None

        candidates = self.roster.show(context.guild_id)
        if not candidates:
            await context.reply(self._empty_roster_reply())
            return

        lines = [candidate.describe() for candidate in candidates]
        lines.append("")
        lines.append(
            f"Use `{self.config.command_prefix} spare <index,...>` to drop entries or "
            f"`{self.config.command_prefix} kick` to kick everyone listed. "
            "Indices change after every spare, so list again before the next one."
        )
        await context.reply("\n".join(lines))

    async def spare(self, context: CommandContext, tokens: List[str]) -> None:
        """``spare <idx[,idx...]>``: remove suspects from the roster."""
        if not await self._require_moderator(context):
            return
        assert context.guild_id is not None

        spared = self.roster.spare(context.guild_id, parse_indices(tokens[1:]))
        if spared is None:
            await context.reply("Nothing to spare: " + self._empty_roster_reply())
            return
        if not spared:
            await context.reply("No suspects matched those indices.")
            return

        remaining = len(self.roster.show(context.guild_id))
        await context.reply(
            f"Spared {len(spared)} suspect(s): {', '.join(candidate.tag for candidate in spared)}. "
            f"{remaining} remaining; run `{self.config.command_prefix} list` to see the new indices."
        )

    async def kick(self, context: CommandContext, tokens: List[str]) -> None:
        """``kick``: kick every suspect on the roster and empty it."""
        if not await self._require_moderator(context):
            return
        assert context.guild_id is not None

        candidates = self.roster.drain(context.guild_id)
        if not candidates:
            await context.reply(self._empty_roster_reply())
            return

        kicked = 0
        for candidate in candidates:
            if await self.gateway.remove_member(context.guild_id, candidate.user_id, reason=KICK_REASON):
                kicked += 1
            else:
                logger.info("[WORKFLOW] Skipped %s: no longer a member or kick failed", candidate.tag)

        logger.info(
            "[WORKFLOW] %s kicked %d of %d suspect(s) in guild %s",
            context.author_id, kicked, len(candidates), context.guild_id,
        )
        await context.reply(f"Kicked {kicked} of {len(candidates)} suspect(s).")

    # ------------------------------------------------------------------
    # Direct-message commands
    # ------------------------------------------------------------------

    async def verify(self, context: CommandContext, tokens: List[str]) -> None:
        """``verify <code>``: redeem the caller's pending verification."""
        outcome = await self.redeem(context.author_id, tokens[1] if len(tokens) > 1 else None)
        await context.reply(outcome.message)

    async def redeem(self, user_id: UserID, code: Optional[str]) -> RedeemOutcome:
        """Redemption entry point shared by ``verify`` and the verification web server."""
        outcome = await self.ledger.redeem(user_id, code)
        logger.info("[WORKFLOW] Redeem attempt by %s: %s", user_id, outcome.name)
        return outcome

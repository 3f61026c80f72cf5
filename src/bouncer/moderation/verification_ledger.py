"""
Pending verifications of quarantined users.

Records live in the ``verification`` store under two key families:

- ``ban:<token>`` -> the record, for the web server that opens the link
- ``user:<user id>`` -> the token, so every user has at most one live record

Issuing a new record for a user replaces the previous one. Every multi-key
write runs in one transaction on the shared connection: a successful redeem
drops both keys and whitelists the user in a single commit, so a replayed
attempt finds nothing pending and a failed one leaves the record in place.
"""

from __future__ import annotations

import secrets
import time
import uuid
from typing import Optional

from bouncer.bot.discord_gateway import PlatformGateway
from bouncer.configuration.app_configuration import DEFAULT_CODE_LENGTH
from bouncer.database.kv_store import KeyValueStore
from bouncer.datatypes.discord_datatypes import GuildID, UserID
from bouncer.datatypes.moderation_datatypes import RedeemOutcome, VerificationRecord
from bouncer.moderation.whitelist import Whitelist
from bouncer.util.logger import get_logger

logger = get_logger("verification_ledger")


def _ban_key(token: str) -> str:
    return f"ban:{token}"


def _user_key(user_id: UserID) -> str:
    return f"user:{user_id}"


def generate_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


class VerificationLedger:
    """Issue, look up, redeem and revoke verification records."""

    def __init__(
        self,
        store: KeyValueStore,
        whitelist: Whitelist,
        gateway: PlatformGateway,
        code_length: int = DEFAULT_CODE_LENGTH,
    ) -> None:
        self._store = store
        self._whitelist = whitelist
        self._gateway = gateway
        self.code_length = code_length

    async def issue(self, user_id: UserID, tag: str, guild_id: GuildID) -> VerificationRecord:
        """Create and persist a fresh record, displacing any earlier one for the user."""
        record = VerificationRecord(
            ban_id=uuid.uuid4().hex,
            user_id=user_id,
            user_tag=tag,
            guild_id=guild_id,
            issued_at=int(time.time()),
            code=generate_code(self.code_length),
        )

        async with self._store.transaction() as conn:
            previous_token = await self._store.get(_user_key(user_id), conn=conn)
            await self._store.put(_ban_key(record.ban_id), record.to_dict(), conn=conn)
            await self._store.put(_user_key(user_id), record.ban_id, conn=conn)
            if previous_token:
                await self._store.delete(_ban_key(previous_token), conn=conn)

        if previous_token:
            logger.info("[LEDGER] Replaced pending verification %s for user %s", previous_token, user_id)
        logger.info("[LEDGER] Issued verification %s for %s (%s) in guild %s", record.ban_id, tag, user_id, guild_id)
        return record

    async def lookup_by_token(self, token: str) -> Optional[VerificationRecord]:
        payload = await self._store.get(_ban_key(token))
        return VerificationRecord.from_dict(payload) if payload else None

    async def lookup_by_user(self, user_id: UserID) -> Optional[VerificationRecord]:
        token = await self._store.get(_user_key(user_id))
        if not token:
            return None
        record = await self.lookup_by_token(token)
        if record is None:
            logger.warning("[LEDGER] Dangling user index for %s -> %s", user_id, token)
        return record

    async def revoke(self, user_id: UserID) -> bool:
        """Drop the user's pending record without whitelisting them."""
        async with self._store.transaction() as conn:
            token = await self._store.get(_user_key(user_id), conn=conn)
            if not token:
                return False
            await self._store.delete(_user_key(user_id), conn=conn)
            await self._store.delete(_ban_key(token), conn=conn)
        logger.info("[LEDGER] Revoked verification %s for user %s", token, user_id)
        return True

    async def redeem(self, user_id: UserID, code: Optional[str]) -> RedeemOutcome:
        """Check ``code`` against the user's pending record and release them on a match."""
        record = await self.lookup_by_user(user_id)
        if record is None:
            return RedeemOutcome.NO_PENDING_VERIFICATION

        if code is None or not code.strip():
            return RedeemOutcome.MISSING_CODE

        if code.strip() != record.code:
            logger.debug("[LEDGER] Wrong code from user %s", user_id)
            return RedeemOutcome.WRONG_CODE

        if not await self._gateway.has_guild(record.guild_id):
            logger.warning("[LEDGER] Guild %s unavailable for redemption by %s", record.guild_id, user_id)
            return RedeemOutcome.GROUP_UNAVAILABLE

        if not await self._gateway.is_member(record.guild_id, user_id):
            return RedeemOutcome.NOT_A_MEMBER

        # Record removal and whitelisting commit together or not at all
        async with self._store.transaction() as conn:
            if await self._store.get(_user_key(user_id), conn=conn) != record.ban_id:
                return RedeemOutcome.NO_PENDING_VERIFICATION
            await self._store.delete(_user_key(user_id), conn=conn)
            await self._store.delete(_ban_key(record.ban_id), conn=conn)
            await self._whitelist.add(user_id, conn=conn)

        if not await self._gateway.lift_quarantine(record.guild_id, user_id, reason="Verification completed"):
            logger.warning("[LEDGER] Could not lift quarantine of %s in guild %s", user_id, record.guild_id)

        logger.info("[LEDGER] User %s redeemed verification %s", user_id, record.ban_id)
        return RedeemOutcome.SUCCESS

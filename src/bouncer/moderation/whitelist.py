"""Durable set of users exempt from quarantine."""

from __future__ import annotations

import time
from typing import Optional

import aiosqlite

from bouncer.database.kv_store import KeyValueStore
from bouncer.datatypes.discord_datatypes import UserID
from bouncer.util.logger import get_logger

logger = get_logger("whitelist")


class Whitelist:
    """Membership is the presence of the user's key in the ``whitelist`` store."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def add(self, user_id: UserID, conn: Optional[aiosqlite.Connection] = None) -> None:
        """Whitelist ``user_id``, inside the caller's transaction when ``conn`` is given."""
        await self._store.put(str(user_id), {"added_at": int(time.time())}, conn=conn)
        logger.info("[WHITELIST] Whitelisted user %s", user_id)

    async def contains(self, user_id: UserID) -> bool:
        return await self._store.contains(str(user_id))

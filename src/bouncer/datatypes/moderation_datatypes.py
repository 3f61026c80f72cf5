"""
Data model shared by the scoring engine, the suspect roster and the
verification ledger.

Profiles and candidates are transient snapshots built from Discord objects;
verification records are persisted as JSON through the key/value store.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet

from bouncer.datatypes.discord_datatypes import GuildID, UserID


class Flag(str, Enum):
    """Heuristic signals raised against a member profile."""

    DEFAULT_AVATAR = "default_avatar"
    SUSPICIOUS_NAME = "suspicious_name"
    NO_ROLES = "no_roles"
    NEW_ACCOUNT = "new_account"
    NO_DISPLAY_NAME = "no_display_name"

    def __str__(self) -> str:
        return self.value


FlagSet = FrozenSet[Flag]


@dataclass(frozen=True, slots=True)
class MemberProfile:
    """Platform-independent view of a guild member used for scoring.

    ``role_count`` excludes the implicit @everyone role.
    """

    user_id: UserID
    tag: str
    username: str
    display_name: str
    created_at: datetime.datetime
    is_bot: bool = False
    has_default_avatar: bool = False
    has_display_name: bool = True
    role_count: int = 0


@dataclass(frozen=True, slots=True)
class Candidate:
    """A flagged member at a fixed position of a roster snapshot."""

    index: int
    user_id: UserID
    tag: str
    display_name: str
    flags: FlagSet = field(default_factory=frozenset)
    score: int = 0

    def describe(self) -> str:
        flag_names = ", ".join(sorted(str(flag) for flag in self.flags)) or "no flags"
        return f"{self.index}. {self.tag} (score {self.score}: {flag_names})"


@dataclass(frozen=True, slots=True)
class VerificationRecord:
    """A pending verification for a quarantined user.

    ``issued_at`` is stored as unix seconds (UTC).
    """

    ban_id: str
    user_id: UserID
    user_tag: str
    guild_id: GuildID
    issued_at: int
    code: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ban_id": self.ban_id,
            "user_id": str(self.user_id),
            "user_tag": self.user_tag,
            "guild_id": str(self.guild_id),
            "issued_at": self.issued_at,
            "code": self.code,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "VerificationRecord":
        return cls(
            ban_id=str(payload["ban_id"]),
            user_id=UserID(payload["user_id"]),
            user_tag=str(payload.get("user_tag", "")),
            guild_id=GuildID(payload["guild_id"]),
            issued_at=int(payload.get("issued_at", 0)),
            code=str(payload["code"]),
        )


class RedeemOutcome(Enum):
    """Result of a verification attempt, with the reply shown to the user."""

    SUCCESS = "Verification successful! You have been unbanned and can rejoin the server."
    NO_PENDING_VERIFICATION = "You don't have a pending verification."
    MISSING_CODE = "Please provide your verification code, e.g. `verify 123456`."
    WRONG_CODE = "That verification code is incorrect."
    GROUP_UNAVAILABLE = "The server you were banned from is no longer available to me."
    NOT_A_MEMBER = "You are no longer associated with the server you were banned from."

    @property
    def message(self) -> str:
        return self.value

    @property
    def ok(self) -> bool:
        return self is RedeemOutcome.SUCCESS

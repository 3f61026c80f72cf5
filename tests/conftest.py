"""
Pytest configuration and fixtures for Bouncer tests.
"""

import datetime
import sys
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pytest
import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from bouncer.configuration.app_configuration import AppConfig  # noqa: E402
from bouncer.database.db_connection import ConnectionManager  # noqa: E402
from bouncer.database.db_schema import VERIFICATION_TABLE, WHITELIST_TABLE  # noqa: E402
from bouncer.database.kv_store import KeyValueStore  # noqa: E402
from bouncer.datatypes.discord_datatypes import GuildID, UserID  # noqa: E402
from bouncer.datatypes.moderation_datatypes import MemberProfile  # noqa: E402
from bouncer.moderation.verification_ledger import VerificationLedger  # noqa: E402
from bouncer.moderation.whitelist import Whitelist  # noqa: E402

GUILD = GuildID(1000)
# Workflow scoring reads the real clock
NOW = datetime.datetime.now(datetime.timezone.utc)


class FakeGateway:
    """In-memory stand-in for the Discord platform."""

    def __init__(self) -> None:
        self.guilds: Set[GuildID] = set()
        self.members: Dict[GuildID, Dict[UserID, MemberProfile]] = {}
        self.banned: Dict[GuildID, Set[UserID]] = {}
        self.direct_messages: List[Tuple[UserID, str]] = []
        self.removed: List[Tuple[GuildID, UserID]] = []
        self.unbanned: List[Tuple[GuildID, UserID]] = []
        self.fail_profiles = False

    def add_member(self, guild_id: GuildID, profile: MemberProfile) -> None:
        self.guilds.add(guild_id)
        self.members.setdefault(guild_id, {})[profile.user_id] = profile

    async def has_guild(self, guild_id: GuildID) -> bool:
        return guild_id in self.guilds

    async def is_member(self, guild_id: GuildID, user_id: UserID) -> bool:
        return user_id in self.members.get(guild_id, {}) or user_id in self.banned.get(guild_id, set())

    async def fetch_profile(self, guild_id: GuildID, user_id: UserID) -> Optional[MemberProfile]:
        return self.members.get(guild_id, {}).get(user_id)

    async def fetch_profiles(self, guild_id: GuildID) -> Optional[List[MemberProfile]]:
        if self.fail_profiles or guild_id not in self.guilds:
            return None
        return list(self.members.get(guild_id, {}).values())

    async def send_direct_message(self, user_id: UserID, content: str) -> bool:
        self.direct_messages.append((user_id, content))
        return True

    async def quarantine(self, guild_id: GuildID, user_id: UserID, reason: str) -> bool:
        self.members.get(guild_id, {}).pop(user_id, None)
        self.banned.setdefault(guild_id, set()).add(user_id)
        return True

    async def lift_quarantine(self, guild_id: GuildID, user_id: UserID, reason: str) -> bool:
        self.banned.get(guild_id, set()).discard(user_id)
        self.unbanned.append((guild_id, user_id))
        return True

    async def remove_member(self, guild_id: GuildID, user_id: UserID, reason: str) -> bool:
        if self.members.get(guild_id, {}).pop(user_id, None) is None:
            return False
        self.removed.append((guild_id, user_id))
        return True


def make_profile(
    user_id: int,
    name: str = "alice",
    *,
    display_name: Optional[str] = None,
    default_avatar: bool = False,
    has_display_name: bool = True,
    role_count: int = 1,
    account_age_days: int = 365,
    is_bot: bool = False,
    now: datetime.datetime = NOW,
) -> MemberProfile:
    """Build a profile; the defaults raise no flags."""
    return MemberProfile(
        user_id=UserID(user_id),
        tag=name,
        username=name,
        display_name=display_name or name,
        created_at=now - datetime.timedelta(days=account_age_days),
        is_bot=is_bot,
        has_default_avatar=default_avatar,
        has_display_name=has_display_name,
        role_count=role_count,
    )


@pytest.fixture
def profile_factory():
    return make_profile


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "app_config.yml"
    path.write_text(
        "command_prefix: '!bb'\n"
        "verification_base_url: 'https://verify.example.org/'\n"
        "join_threshold: 3\n"
        "prepare_threshold: 3\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def app_config(config_path: Path) -> AppConfig:
    return AppConfig(config_path, token="test-token")


@pytest_asyncio.fixture
async def connection(tmp_path: Path):
    manager = ConnectionManager()
    await manager.open(tmp_path / "bouncer.db")
    yield manager
    await manager.close()


@pytest.fixture
def verification_store(connection) -> KeyValueStore:
    return KeyValueStore(connection, VERIFICATION_TABLE)


@pytest.fixture
def whitelist(connection) -> Whitelist:
    return Whitelist(KeyValueStore(connection, WHITELIST_TABLE))


@pytest.fixture
def ledger(verification_store, whitelist, gateway) -> VerificationLedger:
    return VerificationLedger(verification_store, whitelist, gateway)

"""
Heuristic scoring of member profiles.

Every flag has its own rule; rules are evaluated independently and the score
is the sum of the weights of the raised flags. Weights are non-negative, so a
profile raising more flags never scores lower than one raising a subset of
them, and a profile raising none scores 0.
"""

from __future__ import annotations

import datetime
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Mapping, Optional

from bouncer.datatypes.moderation_datatypes import Flag, FlagSet, MemberProfile
from bouncer.configuration.app_configuration import (
    AppConfig,
    DEFAULT_NEW_ACCOUNT_DAYS,
    DEFAULT_SUSPICIOUS_NAME_PATTERN,
)

DEFAULT_WEIGHT = 1


@dataclass(frozen=True)
class ScoringPolicy:
    """Tunable parameters of the flag rules."""

    new_account_days: int = DEFAULT_NEW_ACCOUNT_DAYS
    name_pattern: Optional[re.Pattern[str]] = field(
        default_factory=lambda: re.compile(DEFAULT_SUSPICIOUS_NAME_PATTERN, re.IGNORECASE)
    )
    weights: Mapping[str, int] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: AppConfig) -> "ScoringPolicy":
        return cls(
            new_account_days=config.new_account_days,
            name_pattern=config.suspicious_name_pattern,
            weights=config.flag_weights,
        )

    def weight(self, flag: Flag) -> int:
        return max(0, int(self.weights.get(flag.value, DEFAULT_WEIGHT)))


FlagRule = Callable[[MemberProfile, ScoringPolicy, datetime.datetime], bool]


def _default_avatar(profile: MemberProfile, policy: ScoringPolicy, now: datetime.datetime) -> bool:
    return profile.has_default_avatar


def _suspicious_name(profile: MemberProfile, policy: ScoringPolicy, now: datetime.datetime) -> bool:
    if policy.name_pattern is None:
        return False
    return any(policy.name_pattern.search(name) for name in (profile.username, profile.display_name) if name)


def _no_roles(profile: MemberProfile, policy: ScoringPolicy, now: datetime.datetime) -> bool:
    return profile.role_count == 0


def _new_account(profile: MemberProfile, policy: ScoringPolicy, now: datetime.datetime) -> bool:
    created_at = profile.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=datetime.timezone.utc)
    return now - created_at < datetime.timedelta(days=policy.new_account_days)


def _no_display_name(profile: MemberProfile, policy: ScoringPolicy, now: datetime.datetime) -> bool:
    return not profile.has_display_name


FLAG_RULES: Dict[Flag, FlagRule] = {
    Flag.DEFAULT_AVATAR: _default_avatar,
    Flag.SUSPICIOUS_NAME: _suspicious_name,
    Flag.NO_ROLES: _no_roles,
    Flag.NEW_ACCOUNT: _new_account,
    Flag.NO_DISPLAY_NAME: _no_display_name,
}


def compute_flags(
    profile: MemberProfile,
    policy: Optional[ScoringPolicy] = None,
    now: Optional[datetime.datetime] = None,
) -> FlagSet:
    """Return the set of flags the profile raises."""
    policy = policy or ScoringPolicy()
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return frozenset(flag for flag, rule in FLAG_RULES.items() if rule(profile, policy, now))


def compute_score(flags: Iterable[Flag], policy: Optional[ScoringPolicy] = None) -> int:
    """Sum the weights of the given flags."""
    policy = policy or ScoringPolicy()
    return sum(policy.weight(flag) for flag in set(flags))


def evaluate(
    profile: MemberProfile,
    policy: Optional[ScoringPolicy] = None,
    now: Optional[datetime.datetime] = None,
) -> tuple[FlagSet, int]:
    """Convenience wrapper returning ``(flags, score)``."""
    flags = compute_flags(profile, policy, now)
    return flags, compute_score(flags, policy)

"""
Per-guild rosters of flagged members awaiting manual triage.

Moderators address suspects by the position shown in the last ``list``.
Those positions are a snapshot: any ``spare``, ``kick`` or ``prepare`` renumbers
the roster, so the list has to be shown again before addressing it again.

Every mutation builds a new tuple and swaps it into the mapping in one
assignment, so a coroutine interleaving with another never sees a roster
that is half rewritten.
"""

from __future__ import annotations

import dataclasses
import datetime
import re
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from bouncer.configuration.app_configuration import DEFAULT_THRESHOLD
from bouncer.datatypes.discord_datatypes import GuildID
from bouncer.datatypes.moderation_datatypes import Candidate, MemberProfile
from bouncer.moderation import flag_engine
from bouncer.moderation.flag_engine import ScoringPolicy
from bouncer.util.logger import get_logger

logger = get_logger("suspect_roster")

Prescreen = Callable[[MemberProfile], bool]


def name_prescreen(pattern: Optional[re.Pattern[str]]) -> Prescreen:
    """Build a pre-screening predicate that keeps members matching ``pattern``.

    Bots never pass. With no pattern every human member passes.
    """

    def predicate(profile: MemberProfile) -> bool:
        if profile.is_bot:
            return False
        if pattern is None:
            return True
        return bool(pattern.search(profile.username) or pattern.search(profile.display_name))

    return predicate


def parse_indices(tokens: Iterable[str]) -> List[int]:
    """Extract integer indices from tokens such as ``["1,2", "5"]``.

    Anything that is not a non-negative integer is skipped.
    """
    indices: List[int] = []
    for token in tokens:
        for part in str(token).split(","):
            part = part.strip()
            # isdigit() also admits superscripts such as "²", which int() rejects
            if part.isdecimal():
                indices.append(int(part))
    return indices


class SuspectRoster:
    """Ordered candidates per guild.

    A guild that was never prepared has an empty roster.
    """

    def __init__(self, policy: Optional[ScoringPolicy] = None) -> None:
        self.policy = policy or ScoringPolicy()
        self._rosters: Dict[GuildID, Tuple[Candidate, ...]] = {}

    def prepare(
        self,
        guild_id: GuildID,
        members: Iterable[MemberProfile],
        threshold: int = DEFAULT_THRESHOLD,
        prescreen: Optional[Prescreen] = None,
        now: Optional[datetime.datetime] = None,
    ) -> List[Candidate]:
        """Score ``members`` and replace the guild's roster with those at or above ``threshold``."""
        prescreen = prescreen or name_prescreen(None)
        now = now or datetime.datetime.now(datetime.timezone.utc)

        scored: List[Tuple[MemberProfile, frozenset, int]] = []
        for profile in members:
            if not prescreen(profile):
                continue
            flags, score = flag_engine.evaluate(profile, self.policy, now)
            if score > 0 and score >= threshold:
                scored.append((profile, flags, score))

        scored.sort(key=lambda item: (item[0].display_name.casefold(), item[0].user_id.to_int()))

        candidates = tuple(
            Candidate(
                index=index,
                user_id=profile.user_id,
                tag=profile.tag,
                display_name=profile.display_name,
                flags=flags,
                score=score,
            )
            for index, (profile, flags, score) in enumerate(scored)
        )
        self._rosters[guild_id] = candidates
        logger.info(
            "[ROSTER] Prepared roster for guild %s: %d suspect(s) at threshold %d",
            guild_id, len(candidates), threshold,
        )
        return list(candidates)

    def show(self, guild_id: GuildID) -> List[Candidate]:
        """Return the current roster without changing it."""
        return list(self._rosters.get(guild_id, ()))

    def spare(self, guild_id: GuildID, indices: Iterable[int]) -> Optional[List[Candidate]]:
        """Remove the given positions from the roster and renumber the rest.

        Returns the removed candidates, or ``None`` when the roster is empty and
        there was nothing to spare. Out of range positions are ignored.
        """
        current = self._rosters.get(guild_id, ())
        if not current:
            return None

        wanted = {index for index in indices if 0 <= index < len(current)}
        spared = [candidate for candidate in current if candidate.index in wanted]
        kept = [candidate for candidate in current if candidate.index not in wanted]

        self._rosters[guild_id] = tuple(
            dataclasses.replace(candidate, index=position) for position, candidate in enumerate(kept)
        )
        logger.info(
            "[ROSTER] Spared %d suspect(s) in guild %s, %d remaining",
            len(spared), guild_id, len(kept),
        )
        return spared

    def drain(self, guild_id: GuildID) -> List[Candidate]:
        """Return the whole roster and leave it empty."""
        drained = self._rosters.pop(guild_id, ())
        if drained:
            logger.info("[ROSTER] Drained %d suspect(s) from guild %s", len(drained), guild_id)
        return list(drained)

import re

import pytest

from bouncer.datatypes.discord_datatypes import GuildID, UserID
from bouncer.moderation.suspect_roster import SuspectRoster, name_prescreen, parse_indices

from conftest import GUILD, NOW, make_profile


def suspicious(user_id, name, **overrides):
    """Profile raising default_avatar, no_roles and new_account (score 3)."""
    params = dict(default_avatar=True, role_count=0, account_age_days=1)
    params.update(overrides)
    return make_profile(user_id, name, **params)


@pytest.fixture
def five_members():
    return [
        make_profile(1, "carol"),
        suspicious(2, "zed"),
        make_profile(3, "dave", default_avatar=True),
        suspicious(4, "Bob"),
        make_profile(5, "erin", role_count=0, account_age_days=1),
    ]


def test_prepare_keeps_members_at_threshold_sorted_by_name(five_members):
    roster = SuspectRoster()
    candidates = roster.prepare(GUILD, five_members, threshold=3, now=NOW)

    assert [c.tag for c in candidates] == ["Bob", "zed"]
    assert [c.index for c in candidates] == [0, 1]
    assert all(c.score >= 3 for c in candidates)
    assert roster.show(GUILD) == candidates


def test_prepare_sort_is_case_insensitive():
    roster = SuspectRoster()
    members = [suspicious(1, "beta"), suspicious(2, "Alpha"), suspicious(3, "alpha2")]
    candidates = roster.prepare(GUILD, members, threshold=1, now=NOW)
    assert [c.display_name for c in candidates] == ["Alpha", "alpha2", "beta"]


def test_prepare_replaces_previous_roster(five_members):
    roster = SuspectRoster()
    roster.prepare(GUILD, five_members, threshold=3, now=NOW)
    replaced = roster.prepare(GUILD, five_members, threshold=1, now=NOW)

    assert len(replaced) == 4
    assert roster.show(GUILD) == replaced


def test_prepare_never_lists_unflagged_members():
    roster = SuspectRoster()
    candidates = roster.prepare(GUILD, [make_profile(1), make_profile(2, "bob")], threshold=0, now=NOW)
    assert candidates == []


def test_prepare_skips_bots_and_applies_prescreen():
    roster = SuspectRoster()
    members = [
        suspicious(1, "robot", is_bot=True),
        suspicious(2, "promo_account"),
        suspicious(3, "regular"),
    ]
    candidates = roster.prepare(
        GUILD, members, threshold=3, prescreen=name_prescreen(re.compile("promo")), now=NOW
    )
    assert [c.user_id for c in candidates] == [UserID(2)]


def test_rosters_are_kept_per_guild(five_members):
    roster = SuspectRoster()
    roster.prepare(GUILD, five_members, threshold=3, now=NOW)
    assert roster.show(GuildID(2)) == []
    assert len(roster.show(GUILD)) == 2


def test_show_unprepared_guild_is_empty():
    assert SuspectRoster().show(GUILD) == []


def test_spare_removes_and_renumbers(five_members):
    roster = SuspectRoster()
    roster.prepare(GUILD, five_members, threshold=1, now=NOW)

    spared = roster.spare(GUILD, [0, 2])

    assert [c.tag for c in spared] == ["Bob", "erin"]
    remaining = roster.show(GUILD)
    assert [c.tag for c in remaining] == ["dave", "zed"]
    assert [c.index for c in remaining] == [0, 1]


def test_spare_ignores_out_of_range_indices(five_members):
    roster = SuspectRoster()
    roster.prepare(GUILD, five_members, threshold=3, now=NOW)

    spared = roster.spare(GUILD, [2, 7, 100])

    assert spared == []
    assert len(roster.show(GUILD)) == 2


def test_spare_on_empty_roster_reports_nothing_to_spare():
    roster = SuspectRoster()
    assert roster.spare(GUILD, [0]) is None


def test_drain_returns_everything_and_empties(five_members):
    roster = SuspectRoster()
    roster.prepare(GUILD, five_members, threshold=3, now=NOW)

    drained = roster.drain(GUILD)

    assert len(drained) == 2
    assert roster.show(GUILD) == []
    assert roster.drain(GUILD) == []


def test_show_returns_a_copy(five_members):
    roster = SuspectRoster()
    roster.prepare(GUILD, five_members, threshold=3, now=NOW)
    snapshot = roster.show(GUILD)
    snapshot.clear()
    assert len(roster.show(GUILD)) == 2


@pytest.mark.parametrize(
    "tokens, expected",
    [
        (["1,2", "5"], [1, 2, 5]),
        (["0", "abc", "-1", "3.5"], [0]),
        (["4,,x,6"], [4, 6]),
        (["0", "²", "1,³"], [0, 1]),
        ([], []),
    ],
)
def test_parse_indices(tokens, expected):
    assert parse_indices(tokens) == expected

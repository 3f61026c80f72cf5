import datetime
import itertools
import re

import pytest

from bouncer.configuration.app_configuration import AppConfig
from bouncer.datatypes.moderation_datatypes import Flag
from bouncer.moderation import flag_engine
from bouncer.moderation.flag_engine import ScoringPolicy, compute_flags, compute_score

from conftest import NOW, make_profile


def test_clean_profile_raises_nothing():
    profile = make_profile(1)
    flags = compute_flags(profile, now=NOW)
    assert flags == frozenset()
    assert compute_score(flags) == 0


@pytest.mark.parametrize(
    "overrides, expected",
    [
        ({"default_avatar": True}, Flag.DEFAULT_AVATAR),
        ({"name": "spammer12345"}, Flag.SUSPICIOUS_NAME),
        ({"role_count": 0}, Flag.NO_ROLES),
        ({"account_age_days": 2}, Flag.NEW_ACCOUNT),
        ({"has_display_name": False}, Flag.NO_DISPLAY_NAME),
    ],
)
def test_each_rule_raises_only_its_flag(overrides, expected):
    profile = make_profile(1, **overrides)
    assert compute_flags(profile, now=NOW) == frozenset({expected})


@pytest.mark.parametrize(
    "name, suspicious",
    [
        ("john1234", True),
        ("join discord.gg/abcdef", True),
        ("visit https://spam", True),
        ("john12", False),
        ("Mary", False),
    ],
)
def test_suspicious_name_pattern(name, suspicious):
    profile = make_profile(1, name=name)
    assert (Flag.SUSPICIOUS_NAME in compute_flags(profile, now=NOW)) is suspicious


def test_display_name_is_checked_as_well_as_username():
    profile = make_profile(1, name="harmless", display_name="free nitro at https://x")
    assert Flag.SUSPICIOUS_NAME in compute_flags(profile, now=NOW)


def test_name_rule_disabled_without_pattern():
    policy = ScoringPolicy(name_pattern=None)
    profile = make_profile(1, name="spammer12345")
    assert compute_flags(profile, policy, now=NOW) == frozenset()


def test_new_account_respects_policy_and_naive_timestamps():
    profile = make_profile(1, account_age_days=10)
    assert Flag.NEW_ACCOUNT not in compute_flags(profile, now=NOW)
    assert Flag.NEW_ACCOUNT in compute_flags(profile, ScoringPolicy(new_account_days=30), now=NOW)

    naive = make_profile(2, account_age_days=1, now=NOW.replace(tzinfo=None))
    assert Flag.NEW_ACCOUNT in compute_flags(naive, now=NOW)


def test_score_uses_weights_and_clamps_negatives():
    policy = ScoringPolicy(weights={"default_avatar": 3, "no_roles": -5})
    assert compute_score({Flag.DEFAULT_AVATAR}, policy) == 3
    assert compute_score({Flag.NO_ROLES}, policy) == 0
    assert compute_score({Flag.NEW_ACCOUNT}, policy) == 1
    assert compute_score([Flag.NEW_ACCOUNT, Flag.NEW_ACCOUNT], policy) == 1


@pytest.mark.parametrize(
    "policy",
    [ScoringPolicy(), ScoringPolicy(weights={"default_avatar": 4, "no_roles": 0, "new_account": 2})],
)
def test_score_is_monotonic_over_subsets(policy):
    all_flags = list(Flag)
    subsets = [frozenset(combo) for size in range(len(all_flags) + 1) for combo in itertools.combinations(all_flags, size)]
    for smaller in subsets:
        for larger in subsets:
            if smaller <= larger:
                assert compute_score(smaller, policy) <= compute_score(larger, policy)


def test_evaluate_returns_flags_and_score():
    profile = make_profile(1, default_avatar=True, role_count=0, account_age_days=1, has_display_name=False)
    flags, score = flag_engine.evaluate(profile, now=NOW)
    assert len(flags) == 4
    assert score == 4


def test_policy_from_config(tmp_path):
    path = tmp_path / "app_config.yml"
    path.write_text(
        "new_account_days: 14\n"
        "suspicious_name_pattern: '^bot'\n"
        "flag_weights:\n  default_avatar: 2\n",
        encoding="utf-8",
    )
    policy = ScoringPolicy.from_config(AppConfig(path))
    assert policy.new_account_days == 14
    assert isinstance(policy.name_pattern, re.Pattern)
    assert policy.name_pattern.search("BOTTY")
    assert policy.weight(Flag.DEFAULT_AVATAR) == 2
    assert policy.weight(Flag.NO_ROLES) == 1


def test_compute_flags_defaults_to_current_time():
    profile = make_profile(1, now=datetime.datetime.now(datetime.timezone.utc), account_age_days=0)
    assert Flag.NEW_ACCOUNT in compute_flags(profile)

"""
tests/test_rewards.py: Harvest rewards, experience and level-ups.
"""

from decimal import Decimal

import pytest

from stakefarm.helpers import LevelEngine, RewardCalculator
from stakefarm.models import GameProgress


@pytest.fixture
def level_engine(settings):
    return LevelEngine(settings, RewardCalculator(settings))


def test_reward_scales_with_stake(settings):
    calculator = RewardCalculator(settings)

    assert calculator.harvest_reward(Decimal(1)) == (Decimal(1), 5)
    assert calculator.harvest_reward(Decimal(3)) == (Decimal(3), 15)
    assert calculator.harvest_reward(Decimal("0.5")) == (Decimal("0.5"), 3)


def test_harvest_credits_tokens_and_experience(level_engine):
    progress = GameProgress(experience=0, level=1, token_balance=Decimal(50))

    report = level_engine.apply_harvest(progress, Decimal(1))

    assert progress.experience == 5
    assert progress.token_balance == Decimal(51)
    assert progress.level == 1
    assert not report.leveled_up


def test_single_level_up_even_when_two_thresholds_are_crossed(level_engine, settings):
    progress = GameProgress(experience=95, level=1, token_balance=Decimal(0))

    # +250 XP crosses both the level 1 (100) and level 2 (200) thresholds
    report = level_engine.apply_harvest(progress, Decimal(50))

    assert progress.experience == 345
    assert progress.level == 2
    assert progress.token_balance == Decimal(50) + settings.level_bonus
    assert report.leveled_up
    assert report.new_level == 2
    assert report.bonus == settings.level_bonus


def test_next_level_waits_for_next_event(level_engine):
    progress = GameProgress(experience=345, level=2, token_balance=Decimal(0))

    level_engine.apply_plant(progress)

    assert progress.level == 3
    assert progress.experience == 355


def test_planting_grants_experience(level_engine, settings):
    progress = GameProgress()

    report = level_engine.apply_plant(progress)

    assert progress.experience == settings.plant_xp
    assert report.token_reward == Decimal(0)


def test_required_xp_is_level_times_step(level_engine):
    assert level_engine.required_xp(1) == 100
    assert level_engine.required_xp(7) == 700


def test_level_for_is_pure_and_non_decreasing(level_engine):
    levels = [level_engine.level_for(xp) for xp in range(0, 2000, 7)]

    assert levels == sorted(levels)
    assert level_engine.level_for(0) == 1
    assert level_engine.level_for(99) == 1
    assert level_engine.level_for(100) == 2
    assert level_engine.level_for(250) == level_engine.level_for(250)


def test_incremental_level_never_outruns_experience(level_engine):
    progress = GameProgress()
    for _ in range(200):
        level_engine.apply_harvest(progress, Decimal(7))
        assert progress.level <= level_engine.level_for(progress.experience)

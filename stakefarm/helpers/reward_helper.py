from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple

from ..models import FarmSettings, GameProgress, RewardReport


class RewardCalculator:
    """Turns a confirmed harvest into a token and experience reward."""

    def __init__(self, settings: FarmSettings):
        self.settings = settings

    def harvest_reward(self, stake_amount: Decimal) -> Tuple[Decimal, int]:
        token_reward = max(Decimal(0), stake_amount)
        xp_reward = int((token_reward * self.settings.xp_multiplier).to_integral_value(rounding=ROUND_HALF_UP))
        return token_reward, xp_reward


class LevelEngine:
    """
    Applies experience gains and level-ups to a GameProgress.

    A level-up is evaluated once per mutation: crossing two thresholds in a single gain still
    only grants one level and one bonus, the next level waits for the next qualifying event.
    """

    def __init__(self, settings: FarmSettings, reward_calculator: RewardCalculator):
        self.settings = settings
        self.reward_calculator = reward_calculator

    def required_xp(self, level: int) -> int:
        return level * self.settings.level_xp_step

    def level_for(self, experience: int) -> int:
        """The settled level for a total experience. Pure and non-decreasing."""
        return max(0, experience) // self.settings.level_xp_step + 1

    def check(self, progress: GameProgress) -> bool:
        if progress.experience >= self.required_xp(progress.level):
            progress.level += 1
            progress.token_balance += self.settings.level_bonus
            return True
        return False

    def _credit(self, progress: GameProgress, token_reward: Decimal, xp_reward: int) -> RewardReport:
        progress.token_balance += token_reward
        progress.experience += xp_reward
        leveled_up = self.check(progress)
        return RewardReport(
            token_reward=token_reward,
            xp_reward=xp_reward,
            leveled_up=leveled_up,
            new_level=progress.level,
            bonus=self.settings.level_bonus if leveled_up else Decimal(0),
        )

    def apply_harvest(self, progress: GameProgress, stake_amount: Decimal) -> RewardReport:
        token_reward, xp_reward = self.reward_calculator.harvest_reward(stake_amount)
        return self._credit(progress, token_reward, xp_reward)

    def apply_plant(self, progress: GameProgress) -> RewardReport:
        return self._credit(progress, Decimal(0), self.settings.plant_xp)

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class LedgerFarm:
    """A farm record as reported by the staking contract. Amounts in wei, times in epoch seconds."""
    farm_id: int
    staked_amount: int
    plant_time: int
    harvest_time: int
    growth_stage: int
    growth_progress: int
    active: bool
    harvested: bool


@dataclass(frozen=True)
class LedgerUser:
    """
    Aggregate player data as reported by the staking contract.
    Fields are typed loosely because the contract response is not trusted to be numeric.
    """
    total_xp: Any
    level: Any
    total_harvests: Any
    total_staked: Any
    total_rewards: Any

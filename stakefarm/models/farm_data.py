from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass
class Plot:
    """Represents one staking slot in a player's farm."""
    planted: bool = False
    stake_amount: Decimal = Decimal(0)
    plant_time: int = 0
    harvest_time: int = 0
    growth_stage: int = 0
    ready: bool = False
    active: bool = False
    harvested: bool = False
    external_farm_id: Optional[int] = None
    token_type_id: Optional[str] = None


@dataclass
class GameProgress:
    """The internal representation of a player's experience and balance."""
    experience: int = 0
    level: int = 1
    token_balance: Decimal = Decimal(50)


@dataclass(frozen=True)
class FarmSettings:
    """Tunable game rules. Loaded from Red's Config by the cog."""
    plot_count: int = 12
    tick_interval_ms: int = 1000
    refresh_interval_s: int = 30
    min_stake: Decimal = Decimal("0.000001")
    token_decimals: int = 18
    stack_reduction: Decimal = Decimal("0.2")
    min_growth_ms: int = 5000
    xp_multiplier: int = 5
    plant_xp: int = 10
    level_xp_step: int = 100
    level_bonus: Decimal = Decimal(10)
    starting_balance: Decimal = Decimal(50)
    default_growth_ms: int = 30000
    signature_reminder_s: int = 900
    contract_address: str = "0x3654cadc3c65a6c0a47bb785eac90e9d21b194a8"
    rpc_url: str = "https://mainnet.base.org"


# --- External Immutable Views ---

@dataclass(frozen=True)
class PlotView:
    """The external read-only view of a plot."""
    index: int
    planted: bool
    stake_amount: Decimal
    plant_time: int
    harvest_time: int
    growth_stage: int
    ready: bool
    active: bool
    harvested: bool
    external_farm_id: Optional[int]
    token_type_id: Optional[str]

    @property
    def is_empty(self) -> bool:
        return not self.planted

    def remaining_ms(self, now: int) -> int:
        if not self.planted:
            return 0
        return max(0, self.harvest_time - now)

    def progress(self, now: int) -> float:
        """Clock-derived growth fraction in [0, 1]."""
        if not self.planted:
            return 0.0
        total = self.harvest_time - self.plant_time
        if total <= 0:
            return 1.0
        return min(max((now - self.plant_time) / total, 0.0), 1.0)


@dataclass(frozen=True)
class GameProgressView:
    """The external read-only view of a player's progress."""
    experience: int
    level: int
    token_balance: Decimal


@dataclass(frozen=True)
class RewardReport:
    """What a confirmed plant or harvest credited to the player."""
    token_reward: Decimal = Decimal(0)
    xp_reward: int = 0
    leveled_up: bool = False
    new_level: int = 1
    bonus: Decimal = Decimal(0)

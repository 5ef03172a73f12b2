from decimal import Decimal, InvalidOperation
from typing import Any

from ..errors import InvalidAmount, NoCorrelationError
from ..models import FarmSettings, PlotView, TransactionIntent
from .chain_helper import ContractCalls, to_smallest_unit
from .farm_state_helper import PlotStateStore


class StakeIntentBuilder:
    """Validates stake input and prepares stake intents. Never touches plot state."""

    def __init__(self, settings: FarmSettings, calls: ContractCalls):
        self.settings = settings
        self.calls = calls

    def parse_amount(self, raw: Any) -> Decimal:
        """Parses user input into a positive, finite Decimal no smaller than the minimum stake."""

        if isinstance(raw, bool):
            raise InvalidAmount(f"`{raw}` is not a valid stake amount.")

        try:
            amount = Decimal(str(raw).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmount(f"`{raw}` is not a valid stake amount.")

        if not amount.is_finite():
            raise InvalidAmount(f"`{raw}` is not a finite amount.")
        if amount <= 0:
            raise InvalidAmount("Stake amount must be greater than zero.")
        if amount < self.settings.min_stake:
            raise InvalidAmount(f"Stake amount must be at least {self.settings.min_stake}.")

        return amount

    def to_transfer_value(self, amount: Decimal) -> int:
        return to_smallest_unit(amount, self.settings.token_decimals)

    def build(self, plot_index: int, raw_amount: Any) -> TransactionIntent:
        amount = self.parse_amount(raw_amount)
        value = self.to_transfer_value(amount)
        return TransactionIntent(
            kind="stake",
            plot_index=plot_index,
            calls=(self.calls.stake(value),),
            value=value,
            amount=amount,
        )


class StackAction:
    """
    Adds stake to a growing plot. Stacking shortens the remaining growth time by a fixed
    fraction, never below the configured minimum duration.
    """

    def __init__(self, settings: FarmSettings, stake_builder: StakeIntentBuilder):
        self.settings = settings
        self.stake_builder = stake_builder

    def build(self, view: PlotView, raw_amount: Any) -> TransactionIntent:
        if not view.planted:
            raise NoCorrelationError(f"Plot {view.index + 1}: Nothing is growing here to stack onto.")
        if view.ready:
            raise NoCorrelationError(f"Plot {view.index + 1}: Already mature. Harvest it instead.")
        if view.external_farm_id is None:
            raise NoCorrelationError(
                f"Plot {view.index + 1}: Not yet linked to a ledger farm. Wait for the next sync.")

        amount = self.stake_builder.parse_amount(raw_amount)
        value = self.stake_builder.to_transfer_value(amount)
        return TransactionIntent(
            kind="stack",
            plot_index=view.index,
            calls=(self.stake_builder.calls.add_stake(view.external_farm_id, value),),
            value=value,
            amount=amount,
            farm_id=view.external_farm_id,
        )

    def shortened_remaining(self, remaining_ms: int) -> int:
        if remaining_ms <= 0:
            return 0
        reduced = int(remaining_ms - remaining_ms * self.settings.stack_reduction)
        # A plot already under the floor is never pushed back out.
        return max(reduced, min(self.settings.min_growth_ms, remaining_ms))

    def apply(self, store: PlotStateStore, index: int, amount: Decimal, now: int):
        """Optimistic local update: add stake and pull the maturity deadline forward."""
        view = store.get_plot_view(index)
        new_remaining = self.shortened_remaining(view.remaining_ms(now))
        store.set_stake_and_timer(index, view.stake_amount + amount, now + new_remaining)

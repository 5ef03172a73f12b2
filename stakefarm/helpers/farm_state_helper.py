import dataclasses
from decimal import Decimal
from typing import List, Optional, Tuple

from ..errors import PlotUnavailableError
from ..models import FarmSettings, GameProgress, GameProgressView, Plot, PlotView


class PlotStateStore:
    """
    Holds the canonical plot array and game progress for one session. Enforces encapsulation by
    keeping internal mutable Plot objects and exposing immutable PlotViews.
    """

    def __init__(self, settings: FarmSettings):
        self.settings = settings
        self._plots: List[Plot] = [Plot() for _ in range(settings.plot_count)]
        self._progress = GameProgress(token_balance=settings.starting_balance)

    def __len__(self) -> int:
        return len(self._plots)

    def _get_plot(self, index: int) -> Plot:
        if not 0 <= index < len(self._plots):
            raise PlotUnavailableError(f"Plot {index + 1}: Invalid designation.")
        return self._plots[index]

    @staticmethod
    def _to_view(index: int, plot: Plot) -> PlotView:
        return PlotView(index=index, **dataclasses.asdict(plot))

    def get_plot_view(self, index: int) -> PlotView:
        return self._to_view(index, self._get_plot(index))

    def plot_views(self) -> Tuple[PlotView, ...]:
        return tuple(self._to_view(i, p) for i, p in enumerate(self._plots))

    def progress_view(self) -> GameProgressView:
        return GameProgressView(
            experience=self._progress.experience,
            level=self._progress.level,
            token_balance=self._progress.token_balance,
        )

    @property
    def progress(self) -> GameProgress:
        """Mutable progress, reserved for the reward engine and ledger hydration."""
        return self._progress

    def find_by_farm_id(self, farm_id: int) -> Optional[int]:
        for i, plot in enumerate(self._plots):
            if plot.external_farm_id == farm_id:
                return i
        return None

    def snapshot(self, index: int) -> Plot:
        return dataclasses.replace(self._get_plot(index))

    def restore(self, index: int, snapshot: Plot):
        self._plots[index] = dataclasses.replace(snapshot)

    def plant(self, index: int, amount: Decimal, now: int, growth_ms: int, token_type_id: Optional[str] = None):
        """Marks an empty plot as growing after a confirmed stake."""
        plot = self._get_plot(index)
        if plot.planted:
            raise PlotUnavailableError(f"Plot {index + 1}: Currently occupied.")

        self._plots[index] = Plot(
            planted=True,
            stake_amount=amount,
            plant_time=now,
            harvest_time=now + max(0, growth_ms),
            growth_stage=1,
            ready=False,
            active=True,
            harvested=False,
            external_farm_id=None,
            token_type_id=token_type_id,
        )

    def set_derived(self, index: int, growth_stage: int, ready: bool):
        plot = self._get_plot(index)
        plot.growth_stage = growth_stage
        plot.ready = ready

    def set_stake_and_timer(self, index: int, stake_amount: Decimal, harvest_time: int):
        plot = self._get_plot(index)
        plot.stake_amount = stake_amount
        plot.harvest_time = harvest_time

    def overwrite_from_ledger(self, index: int, *, farm_id: int, stake_amount: Decimal, plant_time: int,
                              harvest_time: int, growth_stage: int, ready: bool, active: bool, harvested: bool):
        """Replaces every ledger-owned field of a plot. Local-only fields (token type) are kept."""
        plot = self._get_plot(index)
        plot.planted = True
        plot.external_farm_id = farm_id
        plot.stake_amount = stake_amount
        plot.plant_time = plant_time
        plot.harvest_time = harvest_time
        plot.growth_stage = growth_stage
        plot.ready = ready
        plot.active = active
        plot.harvested = harvested

    def reset_plot(self, index: int):
        """Returns a plot to the empty state after a confirmed harvest."""
        self._get_plot(index)
        self._plots[index] = Plot()

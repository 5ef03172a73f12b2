from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional

from ..models import FarmSettings, LedgerFarm, LedgerUser
from .chain_helper import from_smallest_unit
from .farm_state_helper import PlotStateStore
from .growth_helper import GrowthScheduler
from .logging_helper import LoggingHelper
from .time_helper import TimeHelper


class ChainReconciler:
    """
    Overwrites local plot and progress fields with ledger truth.

    Plots whose farm is missing from a batch are deliberately left untouched: a farm the
    ledger briefly omits is not treated as cleared.
    """

    def __init__(self, settings: FarmSettings, logger: Optional[LoggingHelper] = None):
        self.settings = settings
        self.logger = logger

    @staticmethod
    def _valid_int(value: Any) -> Optional[int]:
        if isinstance(value, bool):
            return None
        try:
            number = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return None
        if not number.is_finite() or number < 0:
            return None
        return int(number)

    @staticmethod
    def _pick_slot(store: PlotStateStore, position: int, skip: set) -> Optional[int]:
        views = store.plot_views()
        candidates = [v for v in views if v.external_farm_id is None and v.index not in skip]

        if not candidates:
            return None

        # A locally planted plot waiting for its farm id always claims the next unlinked farm.
        for view in candidates:
            if view.planted:
                return view.index

        for view in candidates:
            if view.index == position:
                return view.index

        return candidates[0].index

    def reconcile_farms(self, store: PlotStateStore, farms: Iterable[LedgerFarm], skip: Iterable[int] = (),
                        ignore_farm_ids: Iterable[int] = ()) -> List[int]:
        """
        Applies a farm batch. Plots in `skip` and farms in `ignore_farm_ids` are left alone.
        Returns the indices of plots that were overwritten.
        """

        skip = set(skip)
        ignore_farm_ids = set(ignore_farm_ids)
        updated = []

        for position, farm in enumerate(farms):
            if not farm.active or farm.harvested or farm.farm_id in ignore_farm_ids:
                continue

            index = store.find_by_farm_id(farm.farm_id)
            if index is None:
                index = self._pick_slot(store, position, skip)
                if index is None:
                    self._log(f"Reconcile: No free plot for ledger farm {farm.farm_id}. Skipped.", "WARNING")
                    continue
            elif index in skip:
                continue

            progress = min(max(int(farm.growth_progress), 0), 100)
            store.overwrite_from_ledger(
                index,
                farm_id=farm.farm_id,
                stake_amount=from_smallest_unit(farm.staked_amount, self.settings.token_decimals),
                plant_time=TimeHelper.seconds_to_ms(farm.plant_time),
                harvest_time=TimeHelper.seconds_to_ms(farm.harvest_time),
                growth_stage=GrowthScheduler.stage_for_progress(progress / 100),
                ready=progress >= 100,
                active=farm.active,
                harvested=farm.harvested,
            )
            updated.append(index)

        return updated

    def reconcile_user(self, store: PlotStateStore, user: LedgerUser):
        """Overwrites progress wholesale, keeping the last valid value for any malformed field."""

        progress = store.progress

        experience = self._valid_int(user.total_xp)
        if experience is not None:
            progress.experience = experience
        else:
            self._log(f"Reconcile: Ignoring malformed totalXP {user.total_xp!r}.", "WARNING")

        level = self._valid_int(user.level)
        if level is not None and level >= 1:
            progress.level = level
        else:
            self._log(f"Reconcile: Ignoring malformed level {user.level!r}.", "WARNING")

        rewards = self._valid_int(user.total_rewards)
        if rewards is not None:
            progress.token_balance = from_smallest_unit(rewards, self.settings.token_decimals)
        else:
            self._log(f"Reconcile: Ignoring malformed totalRewards {user.total_rewards!r}.", "WARNING")

    def reconcile(self, store: PlotStateStore, farms: Iterable[LedgerFarm], user: Optional[LedgerUser] = None,
                  skip: Iterable[int] = (), ignore_farm_ids: Iterable[int] = ()) -> List[int]:
        updated = self.reconcile_farms(store, farms, skip, ignore_farm_ids)
        if user is not None:
            self.reconcile_user(store, user)
        self._log(f"Reconcile: {len(updated)} plot(s) refreshed from ledger.", "DEBUG")
        return updated

    def _log(self, message: str, level: str):
        if self.logger:
            self.logger.log(message, level)

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Set

from ..errors import (
    FarmError,
    IntentPendingError,
    PlotUnavailableError,
    ReconciliationStale,
    TransactionError,
    WalletNotConnectedError,
)
from ..models import (
    CallDescriptor,
    FarmSettings,
    LedgerFarm,
    LedgerUser,
    Plot,
    RewardReport,
    TokenType,
    TransactionIntent,
)
from .chain_helper import ContractCalls
from .farm_state_helper import PlotStateStore
from .growth_helper import GrowthScheduler
from .harvest_helper import HarvestAction
from .logging_helper import LoggingHelper
from .reconcile_helper import ChainReconciler
from .reward_helper import LevelEngine, RewardCalculator
from .stake_helper import StackAction, StakeIntentBuilder
from .time_helper import TimeHelper


class SessionProvider(Protocol):
    @property
    def current_address(self) -> Optional[str]: ...

    @property
    def connected(self) -> bool: ...


class LedgerReader(Protocol):
    async def get_user_farms(self, address: str) -> List[LedgerFarm]: ...

    async def get_user_data(self, address: str) -> LedgerUser: ...

    async def get_harvestable(self, address: str) -> Set[int]: ...


class TransactionExecutor(Protocol):
    def execute(self, calls: Sequence[CallDescriptor], on_success: Callable[[], None],
                on_error: Callable[[str], None]): ...


@dataclass
class WalletSession:
    """The wallet a player linked to their farm. Kept in memory only."""
    address: Optional[str] = None

    @property
    def current_address(self) -> Optional[str]:
        return self.address

    @property
    def connected(self) -> bool:
        return self.address is not None


class FarmSession:
    """
    The plot lifecycle engine for one player. Owns the PlotStateStore and serializes every
    mutation: scheduler ticks, player actions, executor callbacks and ledger refreshes.

    Only one intent may be outstanding at a time. An intent is first prepared (validated, nothing
    mutated), then either cancelled or submitted to the executor. The executor's success or error
    callback is the only way a submitted intent completes.
    """

    def __init__(
            self,
            settings: FarmSettings,
            session_provider: SessionProvider,
            ledger_reader: LedgerReader,
            executor: TransactionExecutor,
            token_types: Iterable[TokenType] = (),
            notify: Optional[Callable[[str], None]] = None,
            logger: Optional[LoggingHelper] = None,
            clock: Callable[[], int] = TimeHelper.get_current_timestamp_ms,
    ):
        self.session_provider = session_provider
        self.ledger_reader = ledger_reader
        self.executor = executor
        self.token_types: Dict[str, TokenType] = {t.id: t for t in token_types}
        self.notify = notify or (lambda message: None)
        self.logger = logger
        self.clock = clock

        self.store = PlotStateStore(settings)
        self.scheduler = GrowthScheduler()
        self.configure(settings, ledger_reader)

        self.prepared: Optional[TransactionIntent] = None
        self.submitted: Optional[TransactionIntent] = None
        self._snapshot: Optional[Plot] = None
        self._pending_token: Optional[TokenType] = None

        self.harvestable: Optional[Set[int]] = None
        self.stale = False
        self.refresh_requested = False
        self.last_error: Optional[FarmError] = None
        self.last_report: Optional[RewardReport] = None
        self.last_synced_ms: Optional[int] = None

        # Bumped by every executor callback; a ledger fetch started under an older generation is discarded.
        self.generation = 0
        # Farms harvested locally that the ledger has not yet reported as harvested or gone.
        self.released_farm_ids: Set[int] = set()

    def configure(self, settings: FarmSettings, ledger_reader: Optional[LedgerReader] = None):
        """
        Rebuilds the rule components for new settings. Plot and progress state is kept; an
        intent that was already built keeps the calls it was built with.
        """
        self.settings = settings
        if ledger_reader is not None:
            self.ledger_reader = ledger_reader

        self.calls = ContractCalls(settings.contract_address)
        self.stake_builder = StakeIntentBuilder(settings, self.calls)
        self.stack_action = StackAction(settings, self.stake_builder)
        self.harvest_action = HarvestAction(self.calls)
        self.reward_calculator = RewardCalculator(settings)
        self.level_engine = LevelEngine(settings, self.reward_calculator)
        self.reconciler = ChainReconciler(settings, self.logger)

    # --- Intent lifecycle ---

    @property
    def pending_intent(self) -> Optional[TransactionIntent]:
        return self.submitted or self.prepared

    def _frozen_plots(self) -> Set[int]:
        pending = self.pending_intent
        return {pending.plot_index} if pending else set()

    def _ensure_can_prepare(self):
        if self.pending_intent is not None:
            raise IntentPendingError(
                f"A {self.pending_intent.kind} transaction for plot {self.pending_intent.plot_index + 1} "
                f"is still pending. Confirm or cancel it first.")
        if not self.session_provider.connected:
            raise WalletNotConnectedError("Link a wallet before staking.")

    def _resolve_token(self, token_id: Optional[str]) -> TokenType:
        if token_id is None:
            if not self.token_types:
                return TokenType(id="base", name="BASE", growth_time_ms=self.settings.default_growth_ms)
            return min(self.token_types.values(), key=lambda t: t.unlock_level)

        token = self.token_types.get(token_id.lower())
        if token is None:
            raise PlotUnavailableError(f"Unknown token `{token_id}`.")

        level = self.store.progress.level
        if level < token.unlock_level:
            raise PlotUnavailableError(f"{token.name} unlocks at level {token.unlock_level}. You are level {level}.")
        return token

    def prepare_plant(self, index: int, raw_amount: Any, token_id: Optional[str] = None) -> TransactionIntent:
        self._ensure_can_prepare()
        view = self.store.get_plot_view(index)
        if view.planted:
            raise PlotUnavailableError(f"Plot {index + 1}: Currently occupied.")

        token = self._resolve_token(token_id)
        intent = self.stake_builder.build(index, raw_amount)
        self._pending_token = token
        self.prepared = intent
        return intent

    def prepare_stack(self, index: int, raw_amount: Any) -> TransactionIntent:
        self._ensure_can_prepare()
        intent = self.stack_action.build(self.store.get_plot_view(index), raw_amount)
        self.prepared = intent
        return intent

    def prepare_harvest(self, index: int) -> TransactionIntent:
        self._ensure_can_prepare()
        intent = self.harvest_action.build(self.store.get_plot_view(index))
        self.prepared = intent
        return intent

    def cancel(self) -> bool:
        """Dismisses a prepared intent. Submitted intents can only be resolved by the executor."""
        if self.prepared is None:
            return False
        self.prepared = None
        self._pending_token = None
        return True

    def submit(self) -> TransactionIntent:
        intent = self.prepared
        if intent is None:
            raise FarmError("There is no prepared transaction to submit.")

        self.prepared = None
        self.submitted = intent
        self._snapshot = self.store.snapshot(intent.plot_index)

        if intent.kind == "stack":
            self.stack_action.apply(self.store, intent.plot_index, intent.amount, self.clock())

        self._log(f"Submitting {intent.kind} intent for plot {intent.plot_index + 1} (value={intent.value}).")

        try:
            self.executor.execute(
                intent.calls,
                on_success=lambda: self._on_success(intent),
                on_error=lambda reason: self._on_error(intent, reason),
            )
        except Exception as e:
            self._on_error(intent, str(e))
            raise TransactionError(str(e)) from e

        return intent

    def plant(self, index: int, raw_amount: Any, token_id: Optional[str] = None) -> TransactionIntent:
        self.prepare_plant(index, raw_amount, token_id)
        return self.submit()

    def stack(self, index: int, raw_amount: Any) -> TransactionIntent:
        self.prepare_stack(index, raw_amount)
        return self.submit()

    def harvest(self, index: int) -> TransactionIntent:
        self.prepare_harvest(index)
        return self.submit()

    # --- Executor callbacks ---

    def _on_success(self, intent: TransactionIntent):
        if intent is not self.submitted:
            self._log(f"Ignoring repeated success callback for {intent.kind} on plot {intent.plot_index + 1}.",
                      "WARNING")
            return

        self.submitted = None
        self._snapshot = None
        self.generation += 1
        index = intent.plot_index
        plot_label = f"plot {index + 1}"

        if intent.kind == "stake":
            token = self._pending_token or self._resolve_token(None)
            self._pending_token = None
            self.store.plant(index, intent.amount, self.clock(), token.growth_time_ms, token.id)
            report = self.level_engine.apply_plant(self.store.progress)
            self.notify(f"{token.name} planted in {plot_label}! 🌱 +{report.xp_reward} XP")
        elif intent.kind == "stack":
            view = self.store.get_plot_view(index)
            report = None
            self.notify(f"+{intent.amount} stacked on {plot_label}! Total: {view.stake_amount} 💎")
        else:
            view = self.store.get_plot_view(index)
            report = self.level_engine.apply_harvest(self.store.progress, view.stake_amount)
            if view.external_farm_id is not None:
                self.released_farm_ids.add(view.external_farm_id)
            self.store.reset_plot(index)
            self.notify(f"Harvested {report.token_reward} tokens from {plot_label}! +{report.xp_reward} XP")

        if report is not None:
            self.last_report = report
            if report.leveled_up:
                self.notify(f"Level {report.new_level}! +{report.bonus}💎 bonus!")

        self.refresh_requested = True
        self._log(f"{intent.kind.capitalize()} on {plot_label} confirmed.")

    def _on_error(self, intent: TransactionIntent, reason: str):
        if intent is not self.submitted:
            self._log(f"Ignoring repeated error callback for {intent.kind} on plot {intent.plot_index + 1}.",
                      "WARNING")
            return

        if self._snapshot is not None:
            self.store.restore(intent.plot_index, self._snapshot)
        self.submitted = None
        self._snapshot = None
        self._pending_token = None
        self.generation += 1
        self.last_error = TransactionError(reason)
        self.notify(reason)
        self._log(f"{intent.kind.capitalize()} on plot {intent.plot_index + 1} failed: {reason}", "WARNING")

    # --- Periodic work ---

    def tick(self, now: Optional[int] = None) -> List[int]:
        now = self.clock() if now is None else now
        newly_ready = self.scheduler.tick(self.store, now, self._frozen_plots())
        for index in newly_ready:
            self.notify(f"Plot {index + 1} is ready to harvest! 🌾")
        return newly_ready

    async def refresh(self) -> bool:
        """
        Pulls farms and player data from the ledger and reconciles them into local state.
        Returns False when no wallet is linked or when a transaction resolved while the ledger was
        being read; that fetch is discarded and a new refresh is requested. Raises
        ReconciliationStale when the ledger cannot be read; local state is kept untouched then.
        """
        if not self.session_provider.connected:
            return False

        address = self.session_provider.current_address
        generation = self.generation
        try:
            farms = await self.ledger_reader.get_user_farms(address)
            user = await self.ledger_reader.get_user_data(address)
            harvestable = await self.ledger_reader.get_harvestable(address)
        except Exception as e:
            self.stale = True
            self._log(f"Ledger fetch for {address} failed: {e}", "WARNING")
            raise ReconciliationStale(f"Ledger data may be out of date: {e}") from e

        if generation != self.generation:
            self.refresh_requested = True
            self._log(f"Discarding ledger fetch for {address}: a transaction resolved while it was in flight.",
                      "DEBUG")
            return False

        still_open = {farm.farm_id for farm in farms if farm.active and not farm.harvested}
        self.released_farm_ids &= still_open

        self.reconciler.reconcile(self.store, farms, user, skip=self._frozen_plots(),
                                  ignore_farm_ids=self.released_farm_ids)
        self.harvestable = set(harvestable)
        self.stale = False
        self.last_synced_ms = self.clock()
        self.refresh_requested = False
        return True

    # --- Queries ---

    def can_harvest(self, index: int) -> bool:
        view = self.store.get_plot_view(index)
        if not view.ready or view.external_farm_id is None:
            return False
        return self.harvestable is None or view.external_farm_id in self.harvestable

    def total_staked(self) -> Decimal:
        return sum((v.stake_amount for v in self.store.plot_views() if v.planted), Decimal(0))

    def _log(self, message: str, level: str = "INFO"):
        if self.logger:
            self.logger.log(f"Session: {message}", level)

from decimal import Decimal

import pytest

from stakefarm.helpers import ContractCalls, FarmSession, PlotStateStore, WalletSession
from stakefarm.models import FarmSettings, LedgerFarm, LedgerUser, TokenType

WALLET = "0x00000000000000000000000000000000000000A1"


class FakeClock:
    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


class FakeExecutor:
    """Records submitted call batches and lets tests fire the callbacks."""

    def __init__(self):
        self.requests = []
        self.raise_on_execute = None

    def execute(self, calls, on_success, on_error):
        if self.raise_on_execute:
            raise self.raise_on_execute
        self.requests.append((tuple(calls), on_success, on_error))

    @property
    def last_calls(self):
        return self.requests[-1][0]

    def succeed(self):
        self.requests[-1][1]()

    def fail(self, reason):
        self.requests[-1][2](reason)


class FakeLedgerReader:
    def __init__(self, farms=None, user=None, harvestable=None):
        self.farms = farms or []
        self.user = user or LedgerUser(total_xp=0, level=1, total_harvests=0, total_staked=0, total_rewards=0)
        self.harvestable = harvestable or set()
        self.error = None
        self.fetches = 0
        # Runs while the fetch is in flight, after the farm list was read.
        self.on_fetch = None

    async def get_user_farms(self, address):
        self.fetches += 1
        if self.error:
            raise self.error
        farms = list(self.farms)
        if self.on_fetch:
            self.on_fetch()
        return farms

    async def get_user_data(self, address):
        return self.user

    async def get_harvestable(self, address):
        return set(self.harvestable)


def make_farm(farm_id, staked=10 ** 18, plant_s=1000, harvest_s=1030, progress=50, active=True, harvested=False):
    return LedgerFarm(
        farm_id=farm_id,
        staked_amount=staked,
        plant_time=plant_s,
        harvest_time=harvest_s,
        growth_stage=2,
        growth_progress=progress,
        active=active,
        harvested=harvested,
    )


TOKEN_TYPES = [
    TokenType(id="base", name="BASE", growth_time_ms=30000, unlock_level=1),
    TokenType(id="eth", name="ETH", growth_time_ms=45000, unlock_level=3),
]


@pytest.fixture
def settings():
    return FarmSettings()


@pytest.fixture
def store(settings):
    return PlotStateStore(settings)


@pytest.fixture
def calls(settings):
    return ContractCalls(settings.contract_address)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def reader():
    return FakeLedgerReader()


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def session(settings, executor, reader, clock, notifications):
    return FarmSession(
        settings,
        WalletSession(address=WALLET),
        reader,
        executor,
        token_types=TOKEN_TYPES,
        notify=notifications.append,
        clock=clock,
    )


def plant_growing(store, index=0, amount=Decimal(1), now=1_000_000, growth_ms=30000, farm_id=None):
    """Puts a plot directly into the growing state, optionally correlated with a ledger farm."""
    store.plant(index, amount, now, growth_ms, "base")
    if farm_id is not None:
        view = store.get_plot_view(index)
        store.overwrite_from_ledger(
            index, farm_id=farm_id, stake_amount=view.stake_amount, plant_time=view.plant_time,
            harvest_time=view.harvest_time, growth_stage=view.growth_stage, ready=view.ready,
            active=True, harvested=False,
        )

from .assets import TokenType
from .farm_data import (
    Plot,
    PlotView,
    GameProgress,
    GameProgressView,
    FarmSettings,
    RewardReport,
)
from .intents import CallDescriptor, TransactionIntent
from .ledger import LedgerFarm, LedgerUser

__all__ = [
    "TokenType",
    "Plot",
    "PlotView",
    "GameProgress",
    "GameProgressView",
    "FarmSettings",
    "RewardReport",
    "CallDescriptor",
    "TransactionIntent",
    "LedgerFarm",
    "LedgerUser",
]

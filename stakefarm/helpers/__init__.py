from .time_helper import TimeHelper
from .lock_helper import LockHelper
from .logging_helper import LoggingHelper
from .data_helper import DataHelper
from .chain_helper import ContractCalls, ReceiptSummary, Web3LedgerReader, normalize_address
from .farm_state_helper import PlotStateStore
from .growth_helper import GrowthScheduler
from .stake_helper import StakeIntentBuilder, StackAction
from .harvest_helper import HarvestAction
from .reward_helper import RewardCalculator, LevelEngine
from .reconcile_helper import ChainReconciler
from .executor_helper import DiscordTransactionExecutor
from .session_helper import FarmSession, WalletSession

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, localcontext
from typing import Any, List, Mapping, Optional, Sequence, Set

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound

from ..models import CallDescriptor, LedgerFarm, LedgerUser

_FARM_COMPONENTS = [
    {"name": "stakedAmount", "type": "uint256"},
    {"name": "plantTime", "type": "uint256"},
    {"name": "harvestTime", "type": "uint256"},
    {"name": "growthStage", "type": "uint256"},
    {"name": "growthProgress", "type": "uint256"},
    {"name": "isActive", "type": "bool"},
    {"name": "isHarvested", "type": "bool"},
]

FARM_MANAGER_ABI = [
    {
        "type": "function", "name": "getUserFarms", "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [
            {"name": "farmIds", "type": "uint256[]"},
            {"name": "farms", "type": "tuple[]", "components": _FARM_COMPONENTS},
        ],
    },
    {
        "type": "function", "name": "userData", "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [
            {"name": "totalXP", "type": "uint256"},
            {"name": "level", "type": "uint256"},
            {"name": "totalHarvests", "type": "uint256"},
            {"name": "totalStaked", "type": "uint256"},
            {"name": "totalRewards", "type": "uint256"},
        ],
    },
    {
        "type": "function", "name": "getHarvestableFarms", "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"name": "farmIds", "type": "uint256[]"}],
    },
    {
        "type": "function", "name": "stake", "stateMutability": "payable",
        "inputs": [], "outputs": [],
    },
    {
        "type": "function", "name": "addStake", "stateMutability": "payable",
        "inputs": [{"name": "farmId", "type": "uint256"}], "outputs": [],
    },
    {
        "type": "function", "name": "harvest", "stateMutability": "nonpayable",
        "inputs": [{"name": "farmId", "type": "uint256"}], "outputs": [],
    },
]


@dataclass(frozen=True)
class ReceiptSummary:
    """The parts of a mined transaction receipt needed to attribute it to a pending batch."""
    succeeded: bool
    sender: Optional[str]
    target: Optional[str]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "ReceiptSummary":
        return cls(
            succeeded=raw.get("status") == 1,
            sender=normalize_address(raw.get("from")),
            target=normalize_address(raw.get("to")),
        )

    def mismatch(self, wallet: Optional[str], contract: str) -> Optional[str]:
        """Why this receipt does not belong to a batch sent from `wallet` to `contract`, if it does not."""
        if self.sender is None or self.sender != normalize_address(wallet):
            return f"was sent from `{self.sender}`, not from your linked wallet `{wallet}`"
        if self.target is None or self.target != normalize_address(contract):
            return f"was sent to `{self.target}`, not to the farm contract `{contract}`"
        return None


def normalize_address(address: Any) -> Optional[str]:
    """Returns the checksummed form of an address, or None when it is not a valid address."""
    if not isinstance(address, str) or not Web3.is_address(address):
        return None
    return Web3.to_checksum_address(address)


# Wide enough for any uint256 wei value plus its fractional digits.
UNIT_PRECISION = 100


def from_smallest_unit(raw: int, decimals: int) -> Decimal:
    """Converts an integer amount in the token's smallest unit (wei) to display precision, exactly."""
    with localcontext() as ctx:
        ctx.prec = UNIT_PRECISION
        return Decimal(int(raw)).scaleb(-decimals)


def to_smallest_unit(amount: Decimal, decimals: int) -> int:
    """Converts a display amount to the token's smallest unit, truncating sub-unit dust."""
    with localcontext() as ctx:
        ctx.prec = UNIT_PRECISION
        return int(amount.scaleb(decimals).quantize(Decimal(1), rounding=ROUND_DOWN))


class ContractCalls:
    """Builds call descriptors for the farm manager contract."""

    def __init__(self, contract_address: str):
        self.contract_address = contract_address

    def stake(self, value_wei: int) -> CallDescriptor:
        return CallDescriptor(target=self.contract_address, function="stake", args=(), value=value_wei)

    def add_stake(self, farm_id: int, value_wei: int) -> CallDescriptor:
        return CallDescriptor(target=self.contract_address, function="addStake", args=(farm_id,), value=value_wei)

    def harvest(self, farm_id: int) -> CallDescriptor:
        return CallDescriptor(target=self.contract_address, function="harvest", args=(farm_id,), value=0)


class Web3LedgerReader:
    """Reads farm and player data from the farm manager contract over JSON-RPC."""

    def __init__(self, rpc_url: str, contract_address: str):
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self.contract = self.w3.eth.contract(address=Web3.to_checksum_address(contract_address),
                                             abi=FARM_MANAGER_ABI)

    @staticmethod
    def _farm_from_raw(farm_id: int, raw: Sequence[Any]) -> LedgerFarm:
        staked, plant_time, harvest_time, stage, progress, active, harvested = raw
        return LedgerFarm(
            farm_id=int(farm_id),
            staked_amount=int(staked),
            plant_time=int(plant_time),
            harvest_time=int(harvest_time),
            growth_stage=int(stage),
            growth_progress=int(progress),
            active=bool(active),
            harvested=bool(harvested),
        )

    async def get_user_farms(self, address: str) -> List[LedgerFarm]:
        farm_ids, farms = await self.contract.functions.getUserFarms(Web3.to_checksum_address(address)).call()
        return [self._farm_from_raw(farm_id, raw) for farm_id, raw in zip(farm_ids, farms)]

    async def get_user_data(self, address: str) -> LedgerUser:
        total_xp, level, harvests, staked, rewards = await self.contract.functions.userData(
            Web3.to_checksum_address(address)).call()
        return LedgerUser(total_xp=total_xp, level=level, total_harvests=harvests, total_staked=staked,
                          total_rewards=rewards)

    async def get_harvestable(self, address: str) -> Set[int]:
        farm_ids = await self.contract.functions.getHarvestableFarms(Web3.to_checksum_address(address)).call()
        return {int(farm_id) for farm_id in farm_ids}

    async def get_receipt(self, tx_hash: str) -> Optional[ReceiptSummary]:
        """The mined receipt for a hash, or None when it is not found yet."""
        try:
            receipt = await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        return ReceiptSummary.from_raw(receipt)

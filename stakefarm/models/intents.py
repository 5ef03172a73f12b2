from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class CallDescriptor:
    """A single contract call for the external transaction executor to sign and submit."""
    target: str
    function: str
    args: Tuple[Any, ...] = field(default_factory=tuple)
    value: int = 0

    @property
    def signature(self) -> str:
        return f"{self.function}({', '.join(str(a) for a in self.args)})"


@dataclass(frozen=True)
class TransactionIntent:
    """A built, not-yet-executed transaction request."""
    kind: str
    plot_index: int
    calls: Tuple[CallDescriptor, ...]
    value: int = 0
    amount: Optional[Decimal] = None
    farm_id: Optional[int] = None

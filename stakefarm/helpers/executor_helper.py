import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Tuple

from ..models import CallDescriptor
from .lock_helper import LockHelper
from .logging_helper import LoggingHelper


@dataclass
class PendingTransaction:
    """A call batch handed to a player for signing, awaiting their report."""
    calls: Tuple[CallDescriptor, ...]
    on_success: Callable[[], None]
    on_error: Callable[[str], None]
    created_at: float = field(default_factory=time.time)

    @property
    def target(self) -> Optional[str]:
        """The contract the batch was built for."""
        return self.calls[0].target if self.calls else None


class DiscordTransactionExecutor:
    """
    Executes transactions through the player's own wallet. The call batch is parked here and the
    player is locked until they report the outcome; each batch resolves exactly once.
    """

    def __init__(self, user_id: int, lock_helper: LockHelper, logger: Optional[LoggingHelper] = None):
        self.user_id = user_id
        self.lock_helper = lock_helper
        self.logger = logger
        self.pending: Optional[PendingTransaction] = None

    def execute(self, calls: Sequence[CallDescriptor], on_success: Callable[[], None],
                on_error: Callable[[str], None]):
        if self.pending is not None:
            raise RuntimeError("A transaction is already awaiting a wallet signature.")

        self.pending = PendingTransaction(calls=tuple(calls), on_success=on_success, on_error=on_error)
        summary = ", ".join(call.signature for call in calls)
        self.lock_helper.add_lock(self.user_id, "transaction", f"Awaiting your wallet signature for `{summary}`.")

        if self.logger:
            self.logger.log(f"Executor: User {self.user_id} handed {len(calls)} call(s): {summary}", "DEBUG")

    def _pop(self) -> Optional[PendingTransaction]:
        pending, self.pending = self.pending, None
        self.lock_helper.remove_lock_for_user(self.user_id)
        return pending

    def resolve_success(self) -> bool:
        pending = self._pop()
        if pending is None:
            return False
        pending.on_success()
        return True

    def resolve_error(self, reason: str) -> bool:
        pending = self._pop()
        if pending is None:
            return False
        pending.on_error(reason)
        return True

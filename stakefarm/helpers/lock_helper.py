import time
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional


@dataclass(frozen=True)
class PlayerLock:
    user_id: int
    kind: str
    message: str
    created_at: float = field(default_factory=time.monotonic)

    def age(self, now: Optional[float] = None) -> float:
        return (time.monotonic() if now is None else now) - self.created_at


class LockHelper:
    """Tracks which players have a transaction out for signing. Nothing here is persisted."""

    def __init__(self):
        self._locks: Dict[int, PlayerLock] = {}

    def get_user_lock(self, user_id: int) -> Optional[PlayerLock]:
        return self._locks.get(user_id)

    def add_lock(self, user_id: int, kind: str, message: str) -> bool:
        """Locks a player. An existing lock is kept as is and False is returned."""
        if user_id in self._locks:
            return False
        self._locks[user_id] = PlayerLock(user_id=user_id, kind=kind, message=message)
        return True

    def remove_lock_for_user(self, user_id: int):
        self._locks.pop(user_id, None)

    def expired_user_ids(self, max_age_s: float, now: Optional[float] = None) -> List[int]:
        """Players whose lock has been held for at least `max_age_s` seconds."""
        return [user_id for user_id, lock in self._locks.items() if lock.age(now) >= max_age_s]

    def touch(self, user_id: int, now: Optional[float] = None):
        """Restarts the age of a held lock."""
        lock = self._locks.get(user_id)
        if lock is not None:
            self._locks[user_id] = replace(lock, created_at=time.monotonic() if now is None else now)

    def clear_all_locks(self):
        """To be used on cog unload."""
        self._locks.clear()

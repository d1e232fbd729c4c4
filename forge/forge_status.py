import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from forge.seed_pool import PoolStats

CRITICAL_THRESHOLD = 100

FORGE_LOCKED_MESSAGE = "The 80s Forge has exhausted its unreleased seeds."


class ForgeState(str, Enum):
    AVAILABLE = "available"
    CRITICAL = "critical"  # < CRITICAL_THRESHOLD seeds left
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class ForgeStatus:
    stats: PoolStats
    state: ForgeState
    message: str

    @property
    def is_locked(self) -> bool:
        return self.state is ForgeState.EXHAUSTED

    def to_dict(self) -> dict:
        data = {
            "state": self.state.value,
            "isLocked": self.is_locked,
            "message": self.message,
        }
        data.update(self.stats.to_dict())
        return data


def forge_state(stats: PoolStats) -> ForgeState:
    if stats.available <= 0:
        return ForgeState.EXHAUSTED
    if stats.available < CRITICAL_THRESHOLD:
        return ForgeState.CRITICAL
    return ForgeState.AVAILABLE


def forge_message(stats: PoolStats) -> str:
    remaining = stats.available
    percent = stats.percentage_used

    if remaining <= 0:
        return FORGE_LOCKED_MESSAGE
    if remaining < CRITICAL_THRESHOLD:
        return f"Only {remaining} unreleased seeds remain!"
    if percent > 90:
        return f"Nearly gone: {remaining} seeds left ({percent:.1f}% used)"
    if percent > 75:
        return f"{remaining} seeds available ({percent:.1f}% used)"
    return f"{remaining} unreleased seeds available"


class ForgeStatusCache:
    """
    Process-local cache of the pool status for polling UIs.

    - fixed TTL, recomputed lazily on the next read after expiry
    - invalidated after every successful consume in this process
    - other processes' consumes show up once the TTL runs out
    """

    def __init__(
        self,
        load_stats: Callable[[], PoolStats],
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.load_stats = load_stats
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._lock = threading.Lock()
        self._cached: Optional[ForgeStatus] = None
        self._expires_at = 0.0
        # bumped by invalidate(); a load that straddles a bump is not cached
        self._generation = 0

    def get(self) -> ForgeStatus:
        now = self.clock()
        with self._lock:
            if self._cached is not None and now < self._expires_at:
                return self._cached
            generation = self._generation

        # load outside the lock; a concurrent refresh just does the same read
        stats = self.load_stats()
        status = ForgeStatus(stats=stats, state=forge_state(stats), message=forge_message(stats))
        with self._lock:
            if generation == self._generation:
                self._cached = status
                self._expires_at = now + self.ttl_seconds
        return status

    def invalidate(self) -> None:
        with self._lock:
            self._generation += 1
            self._cached = None
            self._expires_at = 0.0

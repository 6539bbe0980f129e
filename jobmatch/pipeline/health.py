"""Source health tracker: per-source circuit breaker.

States: available / blocked. A source is blocked after
max_consecutive_failures failed runs in a row and becomes available again
when block_duration has elapsed (checked lazily on read) or when an operator
unblocks it. Enable/disable is independent of the failure state.

Pure state, no I/O. Callers persist snapshots if they need them.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta

from jobmatch.core.schemas import SourceHealth

logger = logging.getLogger(__name__)


class SourceHealthTracker:
    """Thread-safe store of SourceHealth records keyed by source name.

    Usage::

        tracker = SourceHealthTracker()
        tracker.register("indeed")
        if tracker.is_available("indeed"):
            ...  # run the adapter
            tracker.record_success("indeed")
    """

    def __init__(
        self,
        max_consecutive_failures: int = 3,
        block_duration: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._max_failures = max_consecutive_failures
        self._block_duration = block_duration
        self._clock = clock
        self._lock = threading.Lock()
        self._health: dict[str, SourceHealth] = {}

    def register(self, source: str, enabled: bool = True) -> None:
        """Start tracking a source. Re-registering keeps the existing state."""
        with self._lock:
            if source not in self._health:
                self._health[source] = SourceHealth(source=source, enabled=enabled)

    def restore(self, health: SourceHealth) -> bool:
        """Replace a registered source's state with a persisted snapshot."""
        with self._lock:
            if health.source not in self._health:
                return False
            self._health[health.source] = health.model_copy()
            return True

    def sources(self) -> list[str]:
        with self._lock:
            return list(self._health)

    def is_available(self, source: str) -> bool:
        """Return True if the source may be scheduled now.

        Applies the automatic unblock rule first, so an expired block is
        cleared as a side effect.
        """
        with self._lock:
            health = self._health.get(source)
            if health is None:
                return False
            self._expire_block(health)
            return health.enabled and not health.is_blocked

    def record_success(self, source: str) -> None:
        with self._lock:
            health = self._health.get(source)
            if health is None:
                return
            now = self._clock()
            health.consecutive_failures = 0
            health.last_success = now
            health.last_run = now
            health.is_blocked = False
            health.blocked_at = None

    def record_failure(self, source: str) -> bool:
        """Count a failed run. Returns True if this failure blocked the source."""
        with self._lock:
            health = self._health.get(source)
            if health is None:
                return False
            now = self._clock()
            health.consecutive_failures += 1
            health.last_run = now
            if not health.is_blocked and health.consecutive_failures >= self._max_failures:
                health.is_blocked = True
                health.blocked_at = now
                logger.warning(
                    "[%s] Blocked after %d consecutive failures",
                    source, health.consecutive_failures,
                )
                return True
            return False

    def set_enabled(self, source: str, enabled: bool) -> bool:
        with self._lock:
            health = self._health.get(source)
            if health is None:
                return False
            health.enabled = enabled
            logger.info("[%s] %s", source, "Enabled" if enabled else "Disabled")
            return True

    def unblock(self, source: str) -> bool:
        """Operator reset: clear the block and the failure count."""
        with self._lock:
            health = self._health.get(source)
            if health is None:
                return False
            self._reset(health)
            logger.info("[%s] Manually unblocked", source)
            return True

    def get(self, source: str) -> SourceHealth | None:
        """Return a copy of one source's state, or None if unknown."""
        with self._lock:
            health = self._health.get(source)
            if health is None:
                return None
            self._expire_block(health)
            return health.model_copy()

    def statuses(self) -> list[SourceHealth]:
        """Return copies of every record, with elapsed blocks already expired."""
        with self._lock:
            result = []
            for health in self._health.values():
                self._expire_block(health)
                result.append(health.model_copy())
            return result

    def _expire_block(self, health: SourceHealth) -> None:
        if not health.is_blocked or health.blocked_at is None:
            return
        if self._clock() - health.blocked_at >= self._block_duration:
            logger.info("[%s] Block window elapsed, source available again", health.source)
            self._reset(health)

    @staticmethod
    def _reset(health: SourceHealth) -> None:
        health.is_blocked = False
        health.blocked_at = None
        health.consecutive_failures = 0

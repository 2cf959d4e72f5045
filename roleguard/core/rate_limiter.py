"""
Fixed-window rate limiting for CSRF validation failures and role mutations.

Each key gets a window that starts at its first recorded hit. Hits inside the
window increment the count; once the count exceeds the threshold the key is
limited until the window elapses. The first hit after that starts a
brand-new window instead of sliding the old one.

CSRF failures are keyed by client IP. Role updates and deletions are keyed
by the acting admin.

State is process-local. For horizontally scaled deployments each instance
enforces its own threshold.
"""
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from uuid import UUID

from roleguard.core.config import settings
from roleguard.core.exceptions import RateLimitedError
from roleguard.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """
    Thread-safe in-memory fixed-window failure counter.

    Example:
        limiter = FixedWindowRateLimiter(max_attempts=10, window_seconds=300)
        if limiter.is_rate_limited(ip):
            raise RateLimitedError(limiter.retry_after(ip))
        if not valid:
            limiter.record_failure(ip)
    """

    def __init__(
        self,
        max_attempts: int,
        window_seconds: float,
        cleanup_interval_ops: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the limiter.

        Args:
            max_attempts: Failures allowed per window; one more trips the limiter
            window_seconds: Window length measured from the first failure
            cleanup_interval_ops: Recorded failures between lazy cleanups
            clock: Monotonic time source in seconds
        """
        if max_attempts <= 0 or window_seconds <= 0:
            raise ValueError("max_attempts and window_seconds must be positive")
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.cleanup_interval_ops = cleanup_interval_ops
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, _Window] = {}
        self._ops_since_cleanup = 0

    def record_failure(self, key: str) -> bool:
        """
        Record a failure for ``key``.

        Returns:
            True if the key is rate limited after this failure
        """
        now = self._clock()
        with self._lock:
            self._ops_since_cleanup += 1
            if self._ops_since_cleanup >= self.cleanup_interval_ops:
                self._purge_expired(now)
                self._ops_since_cleanup = 0

            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return False

            window.count += 1
            limited = window.count > self.max_attempts

        if limited:
            logger.warning("rate_limit_exceeded", key=key, count=window.count)
        return limited

    def is_rate_limited(self, key: str) -> bool:
        """Check whether ``key`` is currently limited. Never mutates state."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                return False
            return window.count > self.max_attempts

    def retry_after(self, key: str) -> int:
        """
        Seconds until the current window of ``key`` elapses.

        Returns:
            Remaining window in whole seconds (at least 1), or 0 if no window is open
        """
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                return 0
            return max(1, math.ceil(window.reset_at - now))

    def failure_count(self, key: str) -> int:
        """Failures recorded for ``key`` in its open window."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                return 0
            return window.count

    def reset(self, key: str) -> None:
        """Forget the window for ``key``."""
        with self._lock:
            self._windows.pop(key, None)

    def cleanup(self) -> int:
        """
        Purge windows that have fully elapsed.

        Returns:
            Number of purged entries
        """
        with self._lock:
            return self._purge_expired(self._clock())

    def clear(self) -> None:
        """Drop all state."""
        with self._lock:
            self._windows = {}
            self._ops_since_cleanup = 0

    @property
    def size(self) -> int:
        """Number of tracked keys."""
        with self._lock:
            return len(self._windows)

    def _purge_expired(self, now: float) -> int:
        # Caller holds the lock. Build a new map and swap it in.
        live = {key: window for key, window in self._windows.items() if now < window.reset_at}
        purged = len(self._windows) - len(live)
        self._windows = live
        if purged:
            logger.debug("rate_limit_cleanup", purged=purged, remaining=len(live))
        return purged


class RoleMutationThrottle:
    """
    Per-actor budget for role updates and deletions.

    Each call counts against the actor's window whether or not the mutation
    then succeeds. The call that exceeds the budget raises RateLimitedError.
    """

    def __init__(self, update_limiter: FixedWindowRateLimiter, delete_limiter: FixedWindowRateLimiter):
        self.update_limiter = update_limiter
        self.delete_limiter = delete_limiter

    def check_update(self, actor_id: UUID) -> None:
        self._consume(self.update_limiter, f"admin-role-update:{actor_id}", "role updates")

    def check_delete(self, actor_id: UUID) -> None:
        self._consume(self.delete_limiter, f"admin-role-delete:{actor_id}", "role deletions")

    @staticmethod
    def _consume(limiter: FixedWindowRateLimiter, key: str, what: str) -> None:
        if limiter.is_rate_limited(key) or limiter.record_failure(key):
            raise RateLimitedError(
                retry_after=limiter.retry_after(key),
                detail=f"Too many {what}. Please try again later.",
            )


_csrf_failure_limiter: Optional[FixedWindowRateLimiter] = None
_role_mutation_throttle: Optional[RoleMutationThrottle] = None


def get_csrf_failure_limiter() -> FixedWindowRateLimiter:
    """
    Get the process-wide CSRF failure limiter singleton.

    Returns:
        FixedWindowRateLimiter configured from settings
    """
    global _csrf_failure_limiter
    if _csrf_failure_limiter is None:
        _csrf_failure_limiter = FixedWindowRateLimiter(
            max_attempts=settings.csrf_rate_limit_max,
            window_seconds=settings.csrf_rate_limit_window_seconds,
            cleanup_interval_ops=settings.csrf_cleanup_interval_ops,
        )
    return _csrf_failure_limiter


def get_role_mutation_throttle() -> RoleMutationThrottle:
    """Process-wide throttle for role updates and deletions, configured from settings."""
    global _role_mutation_throttle
    if _role_mutation_throttle is None:
        window = settings.role_mutation_rate_limit_window_seconds
        _role_mutation_throttle = RoleMutationThrottle(
            update_limiter=FixedWindowRateLimiter(settings.role_update_rate_limit_max, window),
            delete_limiter=FixedWindowRateLimiter(settings.role_delete_rate_limit_max, window),
        )
    return _role_mutation_throttle

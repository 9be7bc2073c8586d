"""Per-link lockout for repeated failed share passwords.

A sliding window of attempt timestamps is kept per token hash.  Every
password attempt reserves a slot in the window before the password is
verified, so concurrent guesses cannot all slip past a stale count.  Once a
link holds ``max_attempts`` slots inside the window, further attempts are
refused until the oldest slot ages out.  A successful verification clears
the link's window; a failed one leaves its slot in place as the failure.

State is process-local.  Multi-instance deployments get a per-instance
allowance, which still bounds guessing throughput per instance.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock

from .model import PasswordLocked


@dataclass(frozen=True)
class LockoutConfig:
    """Failures allowed per window before a link locks."""
    max_attempts: int = 5
    window_seconds: float = 900.0


class PasswordAttemptLimiter:
    """Thread-safe sliding-window attempt counter keyed by token hash."""

    def __init__(self, config: LockoutConfig | None = None):
        self.config = config or LockoutConfig()
        self._attempts: dict[str, list[float]] = {}
        self._lock = Lock()

    def _prune(self, key: str, now: float) -> list[float]:
        cutoff = now - self.config.window_seconds
        timestamps = [t for t in self._attempts.get(key, ()) if t > cutoff]
        if timestamps:
            self._attempts[key] = timestamps
        else:
            self._attempts.pop(key, None)
        return timestamps

    def acquire(self, key: str, now: float | None = None) -> int:
        """Reserve one attempt for ``key`` and return the attempts in the window.

        Raises:
            PasswordLocked: ``key`` has used up its allowance.
        """
        now = now if now is not None else time.time()
        with self._lock:
            timestamps = self._prune(key, now)
            if len(timestamps) >= self.config.max_attempts:
                retry_after = timestamps[0] + self.config.window_seconds - now
                raise PasswordLocked(max(retry_after, 1.0))
            timestamps.append(now)
            self._attempts[key] = timestamps
            return len(timestamps)

    def reset(self, key: str) -> None:
        with self._lock:
            self._attempts.pop(key, None)

"""API key verification and brute-force protection."""

from __future__ import annotations

import hmac
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


def verify_api_key(candidate: str | None, secret: str | None) -> bool:
    """Constant-time comparison of *candidate* against the configured *secret*.

    An unset secret never matches.
    """
    if not secret or candidate is None:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), secret.encode("utf-8"))


@dataclass
class _Attempts:
    count: int = 0
    first_attempt: float = 0.0
    blocked_until: float | None = None


@dataclass
class BruteForceGuard:
    """Track failed API key attempts per client and block repeat offenders.

    After ``max_attempts`` failures within ``window_seconds`` the client is
    blocked for ``block_seconds``.  State is in-memory and per process.
    """

    max_attempts: int = 3
    window_seconds: int = 15 * 60
    block_seconds: int = 30 * 60
    clock: Callable[[], float] = time.monotonic
    cleanup_interval_seconds: int = 60 * 60
    _entries: dict[str, _Attempts] = field(default_factory=dict, init=False, repr=False)
    _last_cleanup: float | None = field(default=None, init=False, repr=False)

    def is_blocked(self, client_id: str) -> int | None:
        """Return the remaining block time in seconds, or ``None`` if not blocked."""
        self._cleanup_if_due()
        entry = self._entries.get(client_id)
        if entry is None or entry.blocked_until is None:
            return None
        remaining = entry.blocked_until - self.clock()
        if remaining <= 0:
            del self._entries[client_id]
            return None
        return max(1, int(remaining + 0.999))

    def record_failure(self, client_id: str) -> None:
        self._cleanup_if_due()
        now = self.clock()
        entry = self._entries.get(client_id)
        if entry is None or now - entry.first_attempt > self.window_seconds:
            entry = _Attempts(count=0, first_attempt=now)
            self._entries[client_id] = entry
        entry.count += 1
        if entry.count >= self.max_attempts:
            entry.blocked_until = now + self.block_seconds
            logger.warning(
                "Blocking client %s for %ds after %d failed API key attempts",
                client_id,
                self.block_seconds,
                entry.count,
            )

    def clear(self, client_id: str) -> None:
        self._entries.pop(client_id, None)

    def cleanup(self) -> int:
        """Drop expired entries; return how many were removed."""
        now = self.clock()
        expired = [
            client_id
            for client_id, entry in self._entries.items()
            if (entry.blocked_until is not None and entry.blocked_until <= now)
            or (entry.blocked_until is None and now - entry.first_attempt > self.window_seconds)
        ]
        for client_id in expired:
            del self._entries[client_id]
        return len(expired)

    def _cleanup_if_due(self) -> None:
        now = self.clock()
        if self._last_cleanup is None:
            self._last_cleanup = now
        elif now - self._last_cleanup >= self.cleanup_interval_seconds:
            self._last_cleanup = now
            removed = self.cleanup()
            if removed:
                logger.debug("Evicted %d expired brute-force entries", removed)

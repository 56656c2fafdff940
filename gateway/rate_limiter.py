"""Per-IP fixed-window rate limiter.

Built once at startup and handed to the access gate. Each IP owns a
window guarded by its own lock; the registry lock is held only while a
window is created or swept. Elapsed windows are swept automatically once
the number of tracked IPs reaches the configured threshold.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from loguru import logger

from contracts.manifest import RateLimitConfig


class _Window:
    __slots__ = ("count", "start", "lock", "retired")

    def __init__(self, start: float) -> None:
        self.count = 0
        self.start = start
        self.lock = threading.Lock()
        self.retired = False


class RateLimiter:
    """Count requests per client IP inside a fixed window."""

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        config = config or RateLimitConfig()
        self._window_seconds = config.window_seconds
        self._max_requests = config.max_requests
        self._sweep_threshold = config.sweep_threshold
        self._next_sweep_at = config.sweep_threshold
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._registry_lock = threading.Lock()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def allow(self, client_ip: str, has_valid_credential: bool = False) -> bool:
        """Record one request for *client_ip*; False once the quota is exceeded."""
        if has_valid_credential:
            return True

        while True:
            now = self._clock()
            window = self._window_for(client_ip, now)
            with window.lock:
                # swept between lookup and lock: count against the new window
                if window.retired:
                    continue
                if now - window.start >= self._window_seconds:
                    window.start = now
                    window.count = 0
                window.count += 1
                return window.count <= self._max_requests

    def count(self, client_ip: str) -> int:
        """Requests seen for *client_ip* in its current window."""
        window = self._windows.get(client_ip)
        if window is None:
            return 0
        with window.lock:
            if window.retired or self._clock() - window.start >= self._window_seconds:
                return 0
            return window.count

    def sweep(self) -> int:
        """Drop windows that have elapsed. Returns the number removed."""
        with self._registry_lock:
            return self._sweep_locked()

    def __len__(self) -> int:
        return len(self._windows)

    # ── internal ────────────────────────────────────────────────────

    def _sweep_locked(self) -> int:
        removed = 0
        for ip, window in list(self._windows.items()):
            with window.lock:
                if self._clock() - window.start < self._window_seconds:
                    continue
                window.retired = True
            del self._windows[ip]
            removed += 1
        # live windows are not rescanned until the map doubles
        self._next_sweep_at = max(self._sweep_threshold, 2 * len(self._windows))
        return removed

    def _window_for(self, client_ip: str, now: float) -> _Window:
        window = self._windows.get(client_ip)
        if window is not None and not window.retired:
            return window
        with self._registry_lock:
            window = self._windows.get(client_ip)
            if window is None or window.retired:
                if len(self._windows) >= self._next_sweep_at:
                    removed = self._sweep_locked()
                    logger.debug("Rate limiter swept {} elapsed window(s), {} tracked", removed, len(self._windows))
                window = _Window(now)
                self._windows[client_ip] = window
            return window

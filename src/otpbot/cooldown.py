"""Per-user command cooldowns with background expiry.

Lifecycle of an entry: unset -> on cooldown (set_cooldown) -> expired (after
the duration elapses) -> removed (next cleanup pass). set_cooldown always
restarts the cooldown, whatever the prior state.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from collections.abc import Callable, Iterator

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_INTERVAL_S = 300.0


class ReadWriteLock:
    """Many concurrent readers or a single writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextlib.contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextlib.contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class CooldownManager:
    """Tracks when each user last ran a rate-limited command."""

    def __init__(
        self,
        duration_s: float,
        clock: Callable[[], float] = time.monotonic,
        log: logging.Logger | None = None,
    ) -> None:
        if duration_s <= 0:
            raise ValueError("Cooldown duration must be positive")
        self.duration_s = float(duration_s)
        self._clock = clock
        self._log = log or logger
        self._last_used: dict[str, float] = {}
        self._lock = ReadWriteLock()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._last_used)

    def is_on_cooldown(self, user_id: str) -> bool:
        with self._lock.read():
            last_used = self._last_used.get(user_id)
            return last_used is not None and self._clock() - last_used < self.duration_s

    def set_cooldown(self, user_id: str) -> None:
        with self._lock.write():
            self._last_used[user_id] = self._clock()

    def remaining(self, user_id: str) -> float:
        """Seconds until user_id may run a command again (0.0 if it may now)."""
        with self._lock.read():
            last_used = self._last_used.get(user_id)
            if last_used is None:
                return 0.0
            elapsed = self._clock() - last_used
            return self.duration_s - elapsed if elapsed < self.duration_s else 0.0

    def cleanup_expired(self) -> int:
        """Drop every entry at least one duration old. Returns how many went."""
        with self._lock.write():
            now = self._clock()
            expired = [uid for uid, ts in self._last_used.items() if now - ts >= self.duration_s]
            for uid in expired:
                del self._last_used[uid]
        return len(expired)


class CooldownCleaner:
    """Daemon thread that runs cleanup_expired() on a fixed interval."""

    def __init__(
        self,
        manager: CooldownManager,
        interval_s: float = DEFAULT_CLEANUP_INTERVAL_S,
        log: logging.Logger | None = None,
    ) -> None:
        self.manager = manager
        self.interval_s = interval_s
        self._log = log or logger
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="cooldown-cleaner", daemon=True)
        self._thread.start()
        self._log.info("Started cooldown cleanup every %.0fs", self.interval_s)

    def stop(self, timeout: float = 5.0) -> None:
        """Wake the loop and wait for it to exit."""
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None

    def _loop(self) -> None:
        # wait() returns True as soon as stop() is called
        while not self._stop_event.wait(self.interval_s):
            self.run_once()

    def run_once(self) -> int:
        try:
            removed = self.manager.cleanup_expired()
        except Exception:
            self._log.error("Cooldown cleanup failed", exc_info=True)
            return 0
        self._log.debug("Cleaned up %d expired cooldowns", removed)
        return removed

import logging
import threading
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from fastapi import Request

from cv_chat.utils.constants import ANON_CLIENT
from cv_chat.utils.errors import RateLimited

logger = logging.getLogger(__name__)


class CounterStore(Protocol):
    def try_consume(self, key: str, cost: int = 1) -> bool:
        ...


class InMemoryCounterStore:
    """Fixed-window counters kept in process memory.

    A window opens on the first hit for a key and lasts ``duration`` seconds.
    Expired windows are swept at most once per ``duration``. Counters are
    lost on restart.
    """

    def __init__(self, points: int, duration: float, clock: Callable[[], float] = time.monotonic):
        if points <= 0 or duration <= 0:
            raise ValueError("points and duration must be positive")
        self.points = points
        self.duration = duration
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._last_prune = clock()
        self._lock = threading.Lock()

    def try_consume(self, key: str, cost: int = 1) -> bool:
        now = self._clock()
        with self._lock:
            self._prune(now)
            start, used = self._windows.get(key, (now, 0))
            if now - start >= self.duration:
                start, used = now, 0
            if used + cost > self.points:
                self._windows[key] = (start, used)
                return False
            self._windows[key] = (start, used + cost)
            return True

    def _prune(self, now: float) -> None:
        if now - self._last_prune < self.duration:
            return
        self._last_prune = now
        expired = [k for k, (start, _) in self._windows.items() if now - start >= self.duration]
        for k in expired:
            del self._windows[k]


class RateLimiter:
    def __init__(self, store: CounterStore):
        self.store = store

    def consume(self, client_key: str, cost: int = 1) -> None:
        if not self.store.try_consume(client_key, cost):
            logger.info("rate limit exceeded for %s", client_key)
            raise RateLimited()


def client_key(request: Request, header: Optional[str] = "cf-connecting-ip") -> str:
    """Proxy-supplied address, then the socket peer, then a shared sentinel."""
    if header:
        forwarded = (request.headers.get(header) or "").strip()
        if forwarded:
            return forwarded
    if request.client and request.client.host:
        return request.client.host
    return ANON_CLIENT

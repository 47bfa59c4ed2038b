"""
Fixed-window request counters keyed by client identity.

Each limiter owns its own store, so the API, mutation, import and auth budgets
count independently. The default store is process-local: with several worker
processes every process keeps its own counters. Plug a shared store in through
``RateLimiter(store=...)`` for multi-instance deployments.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional, Tuple

from fastapi import Request

from esahayak.core.config import settings

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Window:
    count: int
    reset_time: int  # epoch ms


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: int
    total: int

    def retry_after(self, now: int) -> int:
        """Seconds until the window resets (never negative)."""
        return max(0, -(-(self.reset_time - now) // 1000))


class RateLimitStore:
    """Key -> Window storage used by a limiter."""

    def get(self, key: str) -> Optional[Window]:
        raise NotImplementedError

    def set(self, key: str, window: Window) -> None:
        raise NotImplementedError

    def items(self) -> Iterator[Tuple[str, Window]]:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryRateLimitStore(RateLimitStore):
    def __init__(self):
        self._data: Dict[str, Window] = {}

    def get(self, key: str) -> Optional[Window]:
        return self._data.get(key)

    def set(self, key: str, window: Window) -> None:
        self._data[key] = window

    def items(self):
        # copy so callers may delete while iterating
        return iter(list(self._data.items()))

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


def client_ip(request: Request) -> str:
    ip = request.headers.get("x-forwarded-for") or request.headers.get("x-real-ip")
    if ip:
        # first hop is the original client
        return ip.split(",")[0].strip()
    return "unknown"


def default_key(request: Request) -> str:
    return f"{client_ip(request)}:{request.headers.get('x-user-id', '')}"


def auth_key(request: Request) -> str:
    return f"auth:{client_ip(request)}"


class RateLimiter:
    def __init__(
        self,
        max_requests: int,
        window_ms: int,
        key_func: Callable[[Request], str] = default_key,
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], int] = now_ms,
        name: str = "api",
    ):
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.key_func = key_func
        self.store = store if store is not None else MemoryRateLimitStore()
        self.clock = clock
        self.name = name
        self._lock = threading.Lock()

    def check(self, key: str) -> RateLimitResult:
        with self._lock:
            now = self.clock()
            self._cleanup(now)

            window = self.store.get(key)
            if window is None or now > window.reset_time:
                window = Window(count=1, reset_time=now + self.window_ms)
                self.store.set(key, window)
                return RateLimitResult(True, self.max_requests - 1, window.reset_time, self.max_requests)

            if window.count >= self.max_requests:
                return RateLimitResult(False, 0, window.reset_time, self.max_requests)

            window.count += 1
            self.store.set(key, window)
            return RateLimitResult(True, self.max_requests - window.count, window.reset_time, self.max_requests)

    def check_request(self, request: Request) -> RateLimitResult:
        return self.check(self.key_func(request))

    def _cleanup(self, now: int) -> None:
        # lazy eviction on every check, O(n) over live keys
        for key, window in self.store.items():
            if now > window.reset_time:
                self.store.delete(key)

    def reset(self) -> None:
        with self._lock:
            self.store.clear()


api_limiter = RateLimiter(settings.api_rate_limit, settings.api_rate_window_ms, name="api")
mutation_limiter = RateLimiter(settings.mutation_rate_limit, settings.mutation_rate_window_ms, name="mutation")
import_limiter = RateLimiter(settings.import_rate_limit, settings.import_rate_window_ms, name="import")
auth_limiter = RateLimiter(settings.auth_rate_limit, settings.auth_rate_window_ms, key_func=auth_key, name="auth")

ALL_LIMITERS = (api_limiter, mutation_limiter, import_limiter, auth_limiter)

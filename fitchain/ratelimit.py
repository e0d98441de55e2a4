# backend/fitchain/ratelimit.py
"""Per-client request limiting for the analysis and verification endpoints."""

import threading
import time
from functools import wraps
from typing import Callable, Dict, Optional, Tuple

from flask import current_app, request

from .errors import RateLimited


class RateLimiter:
    """Interface: ``hit(key)`` records one request and says whether it is allowed."""

    def hit(self, key: str) -> bool:
        raise NotImplementedError

    def reset(self) -> None:
        raise NotImplementedError


class FixedWindowRateLimiter(RateLimiter):
    """
    In-memory fixed-window counter (use a shared store in production).

    State lives in this process only and is lost on restart.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (count, window reset time)
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._next_sweep = 0.0

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        # at most once per window, drops clients whose window has lapsed
        if now < self._next_sweep:
            return
        self._windows = {k: v for k, v in self._windows.items() if v[1] > now}
        self._next_sweep = now + self.window_seconds

    def hit(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            self._sweep(now)
            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                self._windows[key] = (1, now + self.window_seconds)
                return True
            if count >= self.max_requests:
                return False
            self._windows[key] = (count + 1, reset_at)
            return True

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


def client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or request.remote_addr or "unknown"


def get_limiter(name: str) -> Optional[RateLimiter]:
    return current_app.extensions.get("rate_limiters", {}).get(name)


def rate_limited(name: str, message: str = "Too many requests. Please wait before trying again."):
    """Decorator: reject with 429 once the named limiter refuses the client IP."""

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            limiter = get_limiter(name)
            if limiter is not None:
                ip = client_ip()
                if not limiter.hit(ip):
                    current_app.logger.info(f"[ratelimit] {name} limited ip={ip}")
                    raise RateLimited(message)
            return fn(*args, **kwargs)

        return wrapper

    return decorator

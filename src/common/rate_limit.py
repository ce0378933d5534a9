import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from src import settings


@dataclass(frozen=True)
class RateLimitInfo:
    allowed: bool
    remaining: int
    limit: int
    reset_at: int
    retry_after: int = 0


class FixedWindowRateLimiter:
    """
    In process fixed window limiter keyed by arbitrary strings such as
    ip:1.2.3.4 or user:user-abc. The least recently touched keys are
    evicted once max_keys is reached so memory stays bounded
    """

    def __init__(
        self,
        window_seconds: int | None = None,
        max_keys: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.window_seconds = window_seconds or settings.RATE_LIMIT_SETTINGS['WINDOW_SECONDS']
        self.max_keys = max_keys or settings.RATE_LIMIT_SETTINGS['MAX_KEYS']
        self.clock = clock
        self._buckets: OrderedDict[str, list[int]] = OrderedDict()
        self._lock = threading.Lock()

    def check(self, key: str, limit: int) -> RateLimitInfo:
        now = self.clock()
        window_start = int(now // self.window_seconds) * self.window_seconds
        reset_at = window_start + self.window_seconds

        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket[0] < window_start:
                bucket = [window_start, 0]
                self._buckets[key] = bucket
            self._buckets.move_to_end(key)

            while len(self._buckets) > self.max_keys:
                self._buckets.popitem(last=False)

            if bucket[1] >= limit:
                return RateLimitInfo(
                    allowed=False,
                    remaining=0,
                    limit=limit,
                    reset_at=reset_at,
                    retry_after=max(1, int(reset_at - now)),
                )

            bucket[1] += 1
            return RateLimitInfo(allowed=True, remaining=limit - bucket[1], limit=limit, reset_at=reset_at)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()

    def __len__(self) -> int:
        return len(self._buckets)

"""In-memory fixed-window rate limiter.

Each client identifier maps to a ``(count, window_start)`` record. A request
either opens a new window, resets an expired one, or increments the current
one; the request that pushes the count past the cap is denied together with a
retry-after hint. State is process-local and lost on restart, so each worker
process keeps its own independent view.

Nothing evicts idle clients on its own: ``cleanup()`` must be called
periodically (the application lifespan schedules it) or the map grows with
every distinct client.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request

from .logger import logger


UNKNOWN_CLIENT = "unknown"


@dataclass
class RateLimitRecord:
    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # epoch seconds
    retry_after: int  # seconds, 0 when allowed

    @property
    def reset_at_iso(self) -> str:
        return datetime.fromtimestamp(self.reset_at, tz=timezone.utc).isoformat()


class RateLimiter:
    """Per-client fixed-window request counter.

    Args:
        window_seconds: Length of a counting window
        max_requests: Requests allowed per window
        clock: Returns the current time in epoch seconds (injectable for tests)
    """

    def __init__(
        self,
        window_seconds: float = 60,
        max_requests: int = 100,
        clock: Callable[[], float] = time.time,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def check(self, client_id: str) -> RateLimitResult:
        """Count one request for ``client_id`` and decide whether it may proceed."""
        now = self._clock()
        record = self._records.get(client_id)

        if record is None:
            record = RateLimitRecord(count=1, window_start=now)
            self._records[client_id] = record
        elif now - record.window_start > self.window_seconds:
            record.count = 1
            record.window_start = now
        else:
            record.count += 1

        remaining = max(0, self.max_requests - record.count)
        reset_at = record.window_start + self.window_seconds

        if record.count > self.max_requests:
            retry_after = max(1, math.ceil(reset_at - now))
            return RateLimitResult(
                allowed=False,
                limit=self.max_requests,
                remaining=remaining,
                reset_at=reset_at,
                retry_after=retry_after,
            )

        return RateLimitResult(
            allowed=True,
            limit=self.max_requests,
            remaining=remaining,
            reset_at=reset_at,
            retry_after=0,
        )

    def cleanup(self) -> int:
        """Drop clients whose window started more than two windows ago. Returns the number removed."""
        now = self._clock()
        horizon = self.window_seconds * 2
        stale = [
            client_id
            for client_id, record in self._records.items()
            if now - record.window_start > horizon
        ]
        for client_id in stale:
            del self._records[client_id]
        return len(stale)

    def reset(self) -> None:
        """Forget every client."""
        self._records.clear()


def client_id_from_request(request: Request) -> str:
    """Identify the caller: first X-Forwarded-For hop, then the socket peer, then 'unknown'.

    All unidentifiable callers share the 'unknown' bucket.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


async def run_periodic_cleanup(limiter: RateLimiter, interval: float) -> None:
    """Sweep idle clients every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        removed = limiter.cleanup()
        if removed:
            logger.debug(f"[rate-limit] Evicted {removed} idle client(s), {len(limiter)} tracked")

import logging
import time
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("port_tracker.github")

# pause when GitHub reports exhaustion without a usable reset header
FALLBACK_PAUSE = 60.0


class RateLimiter:
    """Pacing for sequential GitHub calls driven by response headers."""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._next_ts = 0.0
        self.last_remaining: Optional[int] = None
        self.last_reset_epoch: Optional[float] = None

    @property
    def wait_seconds(self) -> float:
        return max(0.0, self._next_ts - self._clock())

    def acquire(self) -> None:
        wait = self.wait_seconds
        if wait <= 0:
            return
        logger.info(
            "GitHub rate limit reached (remaining=%s, reset=%s), waiting %.0fs",
            "?" if self.last_remaining is None else self.last_remaining,
            "?" if self.last_reset_epoch is None else f"{self.last_reset_epoch:.0f}",
            wait,
        )
        while wait > 0:
            self._sleep(min(wait, 2.0))
            wait = self.wait_seconds

    def update(self, headers: Dict[str, Any], errors: Optional[Any] = None) -> None:
        headers = headers or {}
        remaining = headers.get("X-RateLimit-Remaining") or headers.get("x-ratelimit-remaining")
        reset = headers.get("X-RateLimit-Reset") or headers.get("x-ratelimit-reset")
        retry_after = headers.get("Retry-After") or headers.get("retry-after")
        now = self._clock()
        reset_ts = _to_float(reset)
        if reset_ts is not None:
            self.last_reset_epoch = reset_ts
        delay = _to_float(retry_after)
        if delay is not None:
            self._defer_until(now + delay)
        rem = _to_int(remaining)
        if rem is not None:
            self.last_remaining = rem
            if rem <= 1:
                if reset_ts is not None and reset_ts > now:
                    self._defer_until(reset_ts)
                else:
                    self._defer_until(now + FALLBACK_PAUSE)
        if errors and looks_like_rate_limit(errors):
            self._defer_until(now + FALLBACK_PAUSE)

    def _defer_until(self, ts: float) -> None:
        self._next_ts = max(self._next_ts, ts)


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def looks_like_rate_limit(errors: Any) -> bool:
    if not errors:
        return False
    for err in errors:
        if not isinstance(err, dict):
            continue
        if str(err.get("type") or "").upper() == "RATE_LIMITED":
            return True
        message = str(err.get("message") or "").lower()
        if "rate limit" in message or "abuse detection" in message:
            return True
    return False

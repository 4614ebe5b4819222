"""Bounded retry policy for rate-limited upstream calls."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type

from leadintel.core.errors import RateLimitError

logger = logging.getLogger(__name__)


class DeadlineExceeded(RuntimeError):
    """Raised when the next backoff would overrun the caller's deadline."""


def linear_backoff(base_seconds: float) -> Callable[[int], float]:
    """Return a backoff function sleeping ``attempt * base_seconds``."""

    def _backoff(attempt: int) -> float:
        return attempt * base_seconds

    return _backoff


@dataclass(frozen=True)
class RetryPolicy:
    """Retry a callable on selected exceptions with a bounded attempt count.

    ``deadline`` is an absolute ``clock()`` value; when set, a retry whose
    backoff would end past it is abandoned and ``DeadlineExceeded`` raised.
    """

    max_attempts: int = 3
    backoff: Callable[[int], float] = linear_backoff(10.0)
    retry_on: Tuple[Type[BaseException], ...] = (RateLimitError,)
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic

    def run(self, fn: Callable[..., Any], *args: Any, deadline: Optional[float] = None, **kwargs: Any) -> Any:
        attempt = 0
        while True:
            attempt += 1
            try:
                return fn(*args, **kwargs)
            except self.retry_on as exc:
                if attempt >= self.max_attempts:
                    logger.error("Giving up after %s attempts: %s", attempt, exc)
                    raise
                delay = self.backoff(attempt)
                retry_after = getattr(exc, "retry_after", None)
                if retry_after:
                    delay = max(delay, float(retry_after))
                if deadline is not None and self.clock() + delay > deadline:
                    raise DeadlineExceeded(f"retry would exceed deadline: {exc}") from exc
                logger.warning(
                    "Rate limited, retrying in %.1fs (attempt %s/%s)", delay, attempt, self.max_attempts
                )
                self.sleep(delay)

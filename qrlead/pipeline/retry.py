from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence, Tuple, TypeVar

from ..errors import DeadlineExceeded, RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Deadline:
    """Monotonic deadline shared by every network and browser call of one scan.

    ``Deadline(None)`` never expires. Callers clamp their own timeouts with
    ``timeout()`` so an abandoned scan stops at the next suspension point.
    """

    def __init__(self, seconds: Optional[float] = None) -> None:
        self._end = None if seconds is None else time.monotonic() + float(seconds)

    def remaining(self) -> Optional[float]:
        if self._end is None:
            return None
        return max(0.0, self._end - time.monotonic())

    def expired(self) -> bool:
        rem = self.remaining()
        return rem is not None and rem <= 0.0

    def check(self) -> None:
        if self.expired():
            raise DeadlineExceeded("scan deadline exceeded")

    def timeout(self, default: float) -> float:
        """Return ``default`` clamped to the remaining budget."""
        self.check()
        rem = self.remaining()
        return default if rem is None else min(default, rem)

    def sleep(self, seconds: float, sleep: Callable[[float], None] = time.sleep) -> None:
        rem = self.remaining()
        if rem is not None and rem < seconds:
            raise DeadlineExceeded(f"backoff of {seconds}s exceeds remaining budget")
        sleep(seconds)


def backoff_delay(base_s: float, attempt: int) -> float:
    """Exponential backoff: base, 2*base, 4*base, ..."""
    return base_s * (2 ** attempt)


def retry_with_fallback(
    candidates: Sequence[Tuple[str, Callable[[], Optional[T]]]],
    *,
    attempts: int = 1,
    backoff_s: float = 0.0,
    deadline: Optional[Deadline] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Bounded retry over an ordered fallback list.

    Each candidate gets up to ``attempts`` tries; an exception triggers a
    retry after exponential backoff, a ``None`` result moves on to the next
    candidate. Returns the first non-``None`` result, else raises
    ``RetryExhausted`` with the last error. ``DeadlineExceeded`` propagates.
    """
    deadline = deadline or Deadline(None)
    last_error: BaseException | None = None
    tried = 0
    for name, fn in candidates:
        for attempt in range(attempts):
            deadline.check()
            tried += 1
            try:
                result = fn()
            except DeadlineExceeded:
                raise
            except Exception as e:
                last_error = e
                logger.warning("%s attempt %d/%d failed: %s", name, attempt + 1, attempts, e)
                if attempt < attempts - 1 and backoff_s > 0:
                    delay = backoff_delay(backoff_s, attempt)
                    logger.info("retrying %s in %.1fs", name, delay)
                    deadline.sleep(delay, sleep)
                continue
            if result is not None:
                return result
            logger.info("%s returned no data", name)
            break
    raise RetryExhausted(tried, last_error)

"""Bounded retry policy for flaky endpoints."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Tuple, TypeVar

from .errors import RetryableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry an operation on :class:`RetryableError` with a fixed backoff schedule.

    ``backoff[n]`` is the pause after the ``n + 1``-th failed attempt; the last
    entry is reused when the schedule is shorter than ``max_attempts - 1``.
    """

    max_attempts: int = 3
    backoff: Tuple[float, ...] = (0.5, 1.0, 2.0)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def once(cls) -> "RetryPolicy":
        return cls(max_attempts=1, backoff=())

    def delay_for(self, attempt: int) -> float:
        if not self.backoff:
            return 0.0
        return self.backoff[min(attempt, len(self.backoff)) - 1]

    def run(self, operation: Callable[[], T], description: str) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return operation()
            except RetryableError as exc:
                if attempt >= self.max_attempts:
                    if self.max_attempts > 1:
                        logger.error("%s failed after %d attempts: %s", description, attempt, exc)
                    raise
                delay = self.delay_for(attempt)
                logger.warning("%s attempt %d failed: %s; retrying in %.1fs", description, attempt, exc, delay)
                self.sleep(delay)

"""Retry wrapper for whole request/response exchanges.

Only ``TransientApiError`` is retried.  Vendor application errors,
unresolvable functions and invalid input propagate on the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from minimax_chat.errors import TransientApiError

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Exponential backoff: ``backoff_base * backoff_factor ** attempt``.

    With the defaults the waits are 1, 2, 4 ... seconds, capped at
    ``max_backoff``.
    """

    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_factor: float = 2.0
    max_backoff: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the zero-based *attempt* failed."""
        return min(self.backoff_base * (self.backoff_factor ** attempt), self.max_backoff)

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Await ``fn()``, re-running it on transient failure."""
        for attempt in range(self.max_attempts):
            try:
                return await fn()
            except TransientApiError as e:
                if attempt + 1 >= self.max_attempts:
                    _logger.warning(
                        "MiniMax API failed after %d attempts: %s",
                        self.max_attempts, e,
                    )
                    raise
                _logger.warning(
                    "MiniMax API transient error (attempt %d/%d): %s, retrying...",
                    attempt + 1, self.max_attempts, e,
                )
                await asyncio.sleep(self.delay(attempt))
        raise AssertionError("unreachable")

    async def stream(
        self, factory: Callable[[], AsyncIterator[T]],
    ) -> AsyncIterator[T]:
        """Iterate ``factory()``, reopening it on transient failure.

        Once an item has been yielded the stream is never restarted, so
        consumers do not see duplicated fragments.
        """
        for attempt in range(self.max_attempts):
            yielded = False
            try:
                async for item in factory():
                    yielded = True
                    yield item
                return
            except TransientApiError as e:
                if yielded or attempt + 1 >= self.max_attempts:
                    raise
                _logger.warning(
                    "MiniMax stream transient error (attempt %d/%d): %s, retrying...",
                    attempt + 1, self.max_attempts, e,
                )
                await asyncio.sleep(self.delay(attempt))

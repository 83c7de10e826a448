"""Bounded exponential-backoff retry shared by the external-service calls."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from ..errors import InputTooLarge

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Retry an async operation a fixed number of times.

    Attempt ``n`` failing (with attempts left) waits
    ``base_delay_seconds * 2 ** (n - 1)`` plus up to ``jitter_seconds``.
    After the last failure ``run`` returns None instead of raising.
    Exceptions listed in ``give_up_on`` are not retried.
    """
    max_attempts: int = 3
    base_delay_seconds: float = 2.0
    jitter_seconds: float = 0.0
    give_up_on: Tuple[Type[Exception], ...] = (InputTooLarge,)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def _retrying(self, description: str) -> AsyncRetrying:
        def log_retry(retry_state: RetryCallState) -> None:
            logger.error(f"{description} attempt {retry_state.attempt_number} failed: "
                         f"{retry_state.outcome.exception()}")
            logger.info(f"Retrying in {retry_state.next_action.sleep:.1f}s...")

        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay_seconds, exp_base=2)
            + wait_random(0, self.jitter_seconds),
            retry=retry_if_not_exception_type(self.give_up_on),
            sleep=self.sleep,
            before_sleep=log_retry,
            reraise=True,
        )

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "operation") -> Optional[T]:
        try:
            async for attempt in self._retrying(description):
                with attempt:
                    logger.info(f"{description} attempt {attempt.retry_state.attempt_number}/{self.max_attempts}")
                    return await operation()
        except Exception as e:
            logger.error(f"{description} gave up: {e}")
        return None

"""Bounded exponential-backoff retry policy"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhausted(Exception):
    """All attempts failed; last_error holds the final exception"""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class RetryPolicy:
    """
    Retry an async action with exponential backoff

    The first call is followed by up to max_retries retries, waiting
    base_delay * 2**n seconds before retry n+1. Exceptions listed in
    give_up_on are re-raised immediately without retrying.

    Waiting uses asyncio.sleep (non-blocking); tests inject a fake sleep.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        give_up_on: Tuple[Type[BaseException], ...] = (),
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.give_up_on = give_up_on
        self.retry_on = retry_on
        self.sleep = sleep or asyncio.sleep

    def delay_for(self, retry_number: int) -> float:
        return self.base_delay * (2 ** retry_number)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    async def run(self, action: Callable[[], Awaitable[T]], description: str = "operation") -> T:
        """
        Execute action until it succeeds or attempts run out

        Raises:
            RetryExhausted: Every attempt failed with a retryable exception
            Exception: A give_up_on exception, unchanged
        """
        for retry_number in range(self.max_attempts):
            try:
                return await action()
            except self.give_up_on:
                raise
            except self.retry_on as e:
                if retry_number >= self.max_retries:
                    logger.error(
                        f"{description} failed permanently after {self.max_attempts} attempts: {e}"
                    )
                    raise RetryExhausted(self.max_attempts, e) from e

                delay = self.delay_for(retry_number)
                logger.warning(
                    f"{description} failed, retrying in {delay:.2f}s "
                    f"(attempt {retry_number + 1}/{self.max_retries}): {e}"
                )
                await self.sleep(delay)

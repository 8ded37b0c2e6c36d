"""
cloudstore/invoker.py - Invoke store operations with exception translation
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from botocore.exceptions import ConnectionError as BotoConnectionError

from cloudstore.exceptions import ServiceUnavailableError, translate_exception

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Exponential backoff settings for retried operations."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True

    def delay(self, attempt: int) -> float:
        # capped exponent; large attempt counts would overflow a float
        delay = min(self.base_delay * (self.exponential_base ** min(attempt, 64)), self.max_delay)
        if self.jitter:
            delay = delay * (0.5 + random.random() / 2)
        return delay


def is_retriable(ex: Exception) -> bool:
    return isinstance(ex, (ServiceUnavailableError, BotoConnectionError))


class Invoker:
    """
    Run operations once, or with retries, translating SDK failures into
    StoreExitErrors.
    """

    def __init__(self, policy: RetryPolicy | None = None):
        self.policy = policy or RetryPolicy()

    @staticmethod
    async def once(action: str, path: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Invoke an operation a single time; failures are translated and raised."""
        try:
            return await operation()
        except Exception as e:
            translated = translate_exception(action, path, e)
            if translated is e:
                raise
            raise translated from e

    async def retry(
        self,
        action: str,
        path: str,
        idempotent: bool,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Invoke an operation, retrying transient failures of idempotent calls.
        """
        attempt = 0
        while True:
            try:
                return await self.once(action, path, operation)
            except Exception as e:
                if not idempotent or not is_retriable(e) or attempt >= self.policy.max_retries:
                    raise
                delay = self.policy.delay(attempt)
                attempt += 1
                logger.info(
                    "%s on %s failed (%s); retry %d in %.1fs",
                    action,
                    path,
                    e,
                    attempt,
                    delay,
                )
                await asyncio.sleep(delay)

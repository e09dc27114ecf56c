"""
Retry Manager for the domain monitor.

This module provides bounded retries with exponential backoff and jitter.
It drives WHOIS transport attempts and notification delivery.

The delay before attempt ``i`` (0-indexed, ``i > 0``) is

    base_delay * 2**i + uniform(0, max_jitter)

No delay precedes the first attempt and none follows the last one.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from .config import RetryConfig
from .logger import StructuredLogger

T = TypeVar("T")


@dataclass
class RetryResult(Generic[T]):
    """Result of a retry operation."""

    success: bool
    result: Optional[T]
    attempts: int
    last_error: Optional[Exception]


class RetryManager:
    """
    Manages retry logic with exponential backoff and jitter.

    The sleep function and random source are injectable so schedules can be
    observed without waiting.
    """

    COMPONENT = "RetryManager"

    def __init__(
        self,
        config: RetryConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        """
        Initialize the retry manager.

        Args:
            config: Attempt count, base delay and jitter bound
            sleep: Coroutine function used to wait between attempts
            rng: Random source for jitter (defaults to a fresh Random)
            logger: Optional structured logger
        """
        self._config = config
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._logger = logger

    @property
    def config(self) -> RetryConfig:
        return self._config

    def calculate_delay(self, attempt: int) -> float:
        """
        Wait time before ``attempt`` (0-indexed).

        Returns 0.0 for the first attempt.
        """
        if attempt <= 0:
            return 0.0
        delay = self._config.base_delay_seconds * (2 ** attempt)
        jitter = self._rng.uniform(0.0, self._config.max_jitter_seconds)
        return delay + jitter

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        is_retryable: Optional[Callable[[Exception], bool]] = None,
        description: str = "operation",
    ) -> RetryResult[T]:
        """
        Execute an operation with retry logic and exponential backoff.

        Args:
            operation: The async operation to execute
            is_retryable: Optional function to determine if an exception is retryable.
                         If not provided, all exceptions are considered retryable.
            description: Label used in log messages

        Returns:
            RetryResult containing success status, result, attempts, and last error.
            A non-retryable error stops the loop at once and is reported as
            ``last_error``.
        """
        last_error: Optional[Exception] = None
        attempts = 0
        max_attempts = max(self._config.max_attempts, 0)

        while attempts < max_attempts:
            delay = self.calculate_delay(attempts)
            if delay > 0:
                await self._sleep(delay)

            try:
                result = await operation()
                return RetryResult(
                    success=True,
                    result=result,
                    attempts=attempts + 1,
                    last_error=None,
                )
            except Exception as e:
                last_error = e
                attempts += 1

                should_retry = is_retryable(e) if is_retryable else True

                if self._logger:
                    self._logger.debug(
                        self.COMPONENT,
                        f"{description} attempt {attempts}/{max_attempts} failed: {e}",
                        {"retryable": should_retry},
                    )

                if not should_retry:
                    break

        return RetryResult(
            success=False,
            result=None,
            attempts=attempts,
            last_error=last_error,
        )

"""Resilient execution of data-access calls.

Every call to the store goes through ``ResilientExecutor.execute``: each
attempt is bounded by a timeout, transient failures are retried with
exponential backoff, and permanent failures propagate immediately.

Latency bound: a single call spends at most
``(max_attempts + 1) * attempt_timeout + sum(initial_delay * 2**i)`` seconds,
which callers must fit inside any upstream deadline.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Optional,
    TypeVar,
)

from config.settings import ResilienceSettings
from domain.errors import QueryTimeoutError, RetriesExhaustedError

from .faults import FaultKind, classify_fault

logger = logging.getLogger(__name__)

T = TypeVar("T")
Operation = Callable[[], Awaitable[T]]
Classifier = Callable[[BaseException], FaultKind]


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Retries allowed after the first attempt.
        initial_delay: Delay before the first retry in seconds.
        attempt_timeout: Seconds to wait for a single attempt.
        backoff_multiplier: Growth factor between consecutive delays.
        on_retry: Callback invoked as (attempt, error, delay) before each retry.
    """
    max_attempts: int = 2
    initial_delay: float = 0.2
    attempt_timeout: float = 4.0
    backoff_multiplier: float = 2.0
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None

    def calculate_delay(self, attempt_index: int, initial_delay: Optional[float] = None) -> float:
        """Calculate the delay after a failed attempt.

        Args:
            attempt_index: Zero-based index of the attempt that just failed.
            initial_delay: Optional override of the configured initial delay.

        Returns:
            Delay in seconds.
        """
        base = self.initial_delay if initial_delay is None else initial_delay
        return base * (self.backoff_multiplier ** attempt_index)

    @classmethod
    def from_settings(cls, settings: ResilienceSettings) -> "RetryConfig":
        return cls(
            max_attempts=settings.max_attempts,
            initial_delay=settings.initial_delay,
            attempt_timeout=settings.attempt_timeout,
        )


def _consume_abandoned(description: str) -> Callable[["asyncio.Future[Any]"], None]:
    """Done-callback for attempts we stopped waiting on."""

    def callback(task: "asyncio.Future[Any]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Abandoned attempt of {description} failed late: {error}")
        else:
            logger.debug(f"Abandoned attempt of {description} completed after its timeout")

    return callback


class ResilientExecutor:
    """
    Runs data-access operations with a deadline and bounded retries.

    Usage:
        executor = ResilientExecutor(RetryConfig(max_attempts=2))
        partner = await executor.execute(lambda: partners.get(partner_id))

    The operation must be a zero-argument callable returning a fresh
    awaitable on every call, since it is invoked once per attempt.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        classifier: Classifier = classify_fault,
    ):
        self.config = config or RetryConfig()
        self._classify = classifier

    @classmethod
    def from_settings(cls, settings: Optional[ResilienceSettings] = None) -> "ResilientExecutor":
        return cls(RetryConfig.from_settings(settings or ResilienceSettings()))

    async def execute(
        self,
        operation: Operation[T],
        *,
        max_attempts: Optional[int] = None,
        initial_delay: Optional[float] = None,
        attempt_timeout: Optional[float] = None,
        description: Optional[str] = None,
    ) -> T:
        """
        Execute an operation with timeout and retry semantics.

        Args:
            operation: Zero-argument callable returning an awaitable.
            max_attempts: Retries allowed after the first attempt.
            initial_delay: First backoff delay in seconds.
            attempt_timeout: Per-attempt timeout in seconds.
            description: Label used in log records.

        Returns:
            The operation's result.

        Raises:
            RetriesExhaustedError: Transient failures outlasted the budget.
            Exception: Any permanent failure, unchanged.
        """
        retries = self.config.max_attempts if max_attempts is None else max_attempts
        timeout = self.config.attempt_timeout if attempt_timeout is None else attempt_timeout
        label = description or getattr(operation, "__qualname__", "query")

        for attempt in range(retries + 1):
            try:
                return await self._run_attempt(operation, timeout, label)

            except Exception as e:
                if self._classify(e) is FaultKind.PERMANENT:
                    logger.debug(f"Permanent error in {label}, not retrying: {e}")
                    raise

                if attempt >= retries:
                    logger.error(
                        f"Retry budget exhausted for {label} after {attempt + 1} attempts: {e}",
                        extra={"extra_data": {"attempts": attempt + 1, "operation": label}},
                    )
                    raise RetriesExhaustedError(attempts=attempt + 1, last_error=e) from e

                delay = self.config.calculate_delay(attempt, initial_delay)

                logger.warning(
                    f"Transient DB error in {label}, retrying in {delay * 1000:.0f}ms "
                    f"(retry {attempt + 1}/{retries}): {e}",
                    extra={"extra_data": {
                        "operation": label,
                        "retry": attempt + 1,
                        "delay_ms": round(delay * 1000),
                    }},
                )

                if self.config.on_retry:
                    self.config.on_retry(attempt + 1, e, delay)

                await asyncio.sleep(delay)

        # range() always runs at least once; kept for type checkers
        raise RuntimeError("unreachable")

    async def _run_attempt(self, operation: Operation[T], timeout: float, label: str) -> T:
        """Race one attempt against the timer without cancelling it."""
        task = asyncio.ensure_future(operation())
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task not in done:
            # The driver call keeps running; we only stop waiting for it.
            task.add_done_callback(_consume_abandoned(label))
            raise QueryTimeoutError(timeout, label)

        return task.result()

"""Bounded retry combinator returning an explicit outcome."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_none,
    wait_random_exponential,
)

from furnicrawl.logging_config import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryOutcome(Generic[T]):
    ok: bool
    value: T | None
    attempts: int
    error: BaseException | None = None

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return str(self.error) or type(self.error).__name__


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    *,
    max_attempts: int = 3,
    multiplier: float = 0.5,
    max_wait: float = 5.0,
    accept: Callable[[T], bool] | None = None,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    label: str = "operation",
) -> RetryOutcome[T]:
    """Run *operation* up to *max_attempts* times with jittered backoff.

    ``operation`` receives the 1-based attempt number. An exception from
    ``retry_on`` or a result rejected by ``accept`` triggers another attempt.
    Nothing is raised once attempts are exhausted: the last value or error
    is reported in the returned :class:`RetryOutcome`.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    condition = retry_if_exception_type(retry_on)
    if accept is not None:
        condition = condition | retry_if_result(lambda value: not accept(value))

    wait = wait_random_exponential(multiplier=multiplier, max=max_wait) if multiplier > 0 else wait_none()

    def _log_retry(state: Any) -> None:
        outcome = state.outcome
        reason = outcome.exception() if outcome is not None and outcome.failed else "rejected result"
        LOGGER.info(
            "Retrying %s (attempt %s/%s): %s",
            label,
            state.attempt_number,
            max_attempts,
            reason,
        )

    attempts = 0
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait,
            retry=condition,
            before_sleep=_log_retry,
        ):
            with attempt:
                attempts = attempt.retry_state.attempt_number
                value = await operation(attempts)
            if not attempt.retry_state.outcome.failed:
                attempt.retry_state.set_result(value)
    except RetryError as exc:
        last = exc.last_attempt
        if last.failed:
            return RetryOutcome(False, None, attempts, last.exception())
        return RetryOutcome(False, last.result(), attempts, None)

    return RetryOutcome(True, value, attempts, None)

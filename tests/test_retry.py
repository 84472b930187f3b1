from __future__ import annotations

import asyncio

import pytest

from furnicrawl.retry import retry_async


def _run(coro):
    return asyncio.run(coro)


def test_success_on_first_attempt() -> None:
    calls: list[int] = []

    async def operation(attempt: int) -> str:
        calls.append(attempt)
        return "ok"

    outcome = _run(retry_async(operation, multiplier=0))

    assert outcome.ok
    assert outcome.value == "ok"
    assert outcome.attempts == 1
    assert calls == [1]


def test_exceptions_are_retried_until_success() -> None:
    async def operation(attempt: int) -> int:
        if attempt < 3:
            raise RuntimeError("flaky")
        return attempt

    outcome = _run(retry_async(operation, max_attempts=3, multiplier=0))

    assert outcome.ok
    assert outcome.value == 3
    assert outcome.attempts == 3


def test_exhausted_attempts_report_last_error() -> None:
    async def operation(attempt: int) -> None:
        raise RuntimeError(f"boom {attempt}")

    outcome = _run(retry_async(operation, max_attempts=2, multiplier=0))

    assert not outcome.ok
    assert outcome.attempts == 2
    assert outcome.error_message == "boom 2"


def test_rejected_results_are_retried() -> None:
    results = iter([[], [], ["https://a.test/p/1"]])

    async def operation(attempt: int) -> list[str]:
        return next(results)

    outcome = _run(retry_async(operation, max_attempts=3, multiplier=0, accept=bool))

    assert outcome.ok
    assert outcome.value == ["https://a.test/p/1"]
    assert outcome.attempts == 3


def test_rejected_result_after_last_attempt_is_returned() -> None:
    async def operation(attempt: int) -> list[str]:
        return []

    outcome = _run(retry_async(operation, max_attempts=2, multiplier=0, accept=bool))

    assert not outcome.ok
    assert outcome.value == []
    assert outcome.error is None


def test_unlisted_exceptions_propagate() -> None:
    async def operation(attempt: int) -> None:
        raise KeyError("missing")

    with pytest.raises(KeyError):
        _run(retry_async(operation, multiplier=0, retry_on=(RuntimeError,)))


def test_max_attempts_must_be_positive() -> None:
    async def operation(attempt: int) -> None:
        return None

    with pytest.raises(ValueError):
        _run(retry_async(operation, max_attempts=0))

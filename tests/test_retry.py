# tests/test_retry.py
from __future__ import annotations

import asyncio

from fakes import FakeSleep

from core.retry import fixed_delay_ms, linear_backoff_ms, retry_bounded


def test_first_success_does_not_wait() -> None:
    sleep = FakeSleep()

    async def attempt(n: int) -> int:
        return n

    res = asyncio.run(retry_bounded(attempt, max_attempts=5, delay_fn=fixed_delay_ms(500), sleep=sleep))
    assert res.ok and res.value == 1 and res.attempts == 1
    assert sleep.delays == []


def test_linear_backoff_is_capped_and_skips_last_wait() -> None:
    sleep = FakeSleep()
    calls = []

    async def attempt(n: int) -> tuple[int, int]:
        calls.append(n)
        return (0, 0)

    res = asyncio.run(
        retry_bounded(
            attempt,
            max_attempts=20,
            delay_fn=linear_backoff_ms(60, 600),
            predicate=lambda s: s[0] > 0 and s[1] > 0,
            sleep=sleep,
        )
    )
    assert not res.ok
    assert res.attempts == 20
    assert calls == list(range(1, 21))
    assert sleep.delays == [min(60 * n, 600) / 1000.0 for n in range(1, 20)]


def test_exception_counts_as_failed_attempt() -> None:
    sleep = FakeSleep()

    async def attempt(n: int) -> str:
        if n < 3:
            raise ConnectionRefusedError("refused")
        return "ok"

    res = asyncio.run(retry_bounded(attempt, max_attempts=3, delay_fn=fixed_delay_ms(500), sleep=sleep))
    assert res.ok and res.value == "ok" and res.attempts == 3
    assert sleep.delays == [0.5, 0.5]


def test_all_exceptions_keep_last_error() -> None:
    async def attempt(n: int) -> None:
        raise ValueError(f"boom {n}")

    res = asyncio.run(retry_bounded(attempt, max_attempts=3, sleep=FakeSleep()))
    assert not res.ok
    assert str(res.error) == "boom 3"


def test_abort_before_first_attempt() -> None:
    calls = []

    async def attempt(n: int) -> None:
        calls.append(n)

    res = asyncio.run(retry_bounded(attempt, max_attempts=3, should_abort=lambda: True, sleep=FakeSleep()))
    assert res.aborted and res.attempts == 0
    assert calls == []


def test_abort_after_failure_skips_wait() -> None:
    sleep = FakeSleep()
    destroyed = {"v": False}

    async def attempt(n: int) -> None:
        destroyed["v"] = True
        raise RuntimeError("load failed")

    res = asyncio.run(
        retry_bounded(
            attempt,
            max_attempts=3,
            delay_fn=fixed_delay_ms(500),
            should_abort=lambda: destroyed["v"],
            sleep=sleep,
        )
    )
    assert res.aborted and res.attempts == 1
    assert sleep.delays == []


def test_cancellation_is_not_swallowed() -> None:
    async def attempt(n: int) -> None:
        raise asyncio.CancelledError()

    async def main() -> str:
        try:
            await retry_bounded(attempt, max_attempts=3, sleep=FakeSleep())
        except asyncio.CancelledError:
            return "cancelled"
        return "swallowed"

    assert asyncio.run(main()) == "cancelled"

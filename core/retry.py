# core/retry.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    ok: bool
    value: Optional[T]
    attempts: int
    error: Optional[BaseException] = None
    aborted: bool = False


def linear_backoff_ms(step_ms: int, cap_ms: int) -> Callable[[int], float]:
    """
    attempt -> seconds: min(step * attempt, cap)
    """
    def _delay(attempt: int) -> float:
        return min(int(step_ms) * int(attempt), int(cap_ms)) / 1000.0
    return _delay


def fixed_delay_ms(ms: int) -> Callable[[int], float]:
    def _delay(_attempt: int) -> float:
        return int(ms) / 1000.0
    return _delay


async def retry_bounded(
    attempt: Callable[[int], Awaitable[T]],
    *,
    max_attempts: int,
    delay_fn: Optional[Callable[[int], float]] = None,
    predicate: Optional[Callable[[T], bool]] = None,
    should_abort: Optional[Callable[[], bool]] = None,
    sleep: Sleep = asyncio.sleep,
    label: str = "retry",
) -> RetryResult[T]:
    """
    有上限的重试：

    - attempt(n)：第 n 次尝试（从 1 开始）；抛异常或 predicate(value) 为 False 都算失败
    - delay_fn(n)：第 n 次失败后、第 n+1 次之前等待的秒数（最后一次失败后不等待）
    - should_abort()：每次尝试前、每次等待前后检查；为 True 立即放弃，不再等待
    - asyncio.CancelledError 不被吞掉
    """
    max_attempts = max(1, int(max_attempts))
    last_error: Optional[BaseException] = None
    last_value: Optional[T] = None

    for n in range(1, max_attempts + 1):
        if should_abort is not None and should_abort():
            log.info("%s aborted before attempt %d", label, n)
            return RetryResult(ok=False, value=last_value, attempts=n - 1, error=last_error, aborted=True)

        try:
            value = await attempt(n)
        except Exception as e:
            last_error = e
            log.info("%s attempt %d/%d failed: %s", label, n, max_attempts, e)
        else:
            last_value = value
            if predicate is None or predicate(value):
                return RetryResult(ok=True, value=value, attempts=n)
            log.debug("%s attempt %d/%d rejected by predicate", label, n, max_attempts)

        if n >= max_attempts:
            break

        if should_abort is not None and should_abort():
            log.info("%s aborted after attempt %d", label, n)
            return RetryResult(ok=False, value=last_value, attempts=n, error=last_error, aborted=True)

        delay = delay_fn(n) if delay_fn is not None else 0.0
        if delay > 0:
            await sleep(delay)

    return RetryResult(ok=False, value=last_value, attempts=max_attempts, error=last_error)

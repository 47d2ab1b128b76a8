# core/status.py
from __future__ import annotations

import logging
from typing import Callable, List

log = logging.getLogger(__name__)

# 固定状态（控制面按字符串匹配渲染 toast）
CAPTURING = "capturing"
COPIED = "copied"
COPY_FAILED = "copy_failed"
CANCELLED = "cancelled"
BATCH_COMPLETE = "batch-complete"
BATCH_STOPPED = "batch-stopped"

# 带参数状态的前缀
BATCH_PROGRESS = "batch-progress"
BATCH_ERROR = "batch-error"
PICK_POINT_FAILED = "pick-point-failed"
OVERLAY_FAILED = "overlay-failed"


def batch_progress(i: int, total: int) -> str:
    return f"{BATCH_PROGRESS}:{int(i)}:{int(total)}"


def batch_error(message: str) -> str:
    return f"{BATCH_ERROR}:{message}"


def pick_point_failed(message: str) -> str:
    return f"{PICK_POINT_FAILED}:{message}"


def overlay_failed(message: str) -> str:
    return f"{OVERLAY_FAILED}:{message}"


def split_status(status: str) -> tuple[str, str]:
    """
    "batch-error:xxx" -> ("batch-error", "xxx")；无参数的状态返回 (status, "")。
    只按第一个冒号切，错误消息本身可以包含冒号。
    """
    head, sep, rest = (status or "").partition(":")
    return (head, rest) if sep else (head, "")


StatusListener = Callable[[str], None]


class StatusChannel:
    """
    core -> 控制面 的单向状态流。

    - subscribe(fn) 返回 unsubscribe；订阅生命周期由调用方显式管理
    - emit 同步调用所有订阅者；某个订阅者抛异常只记日志，不影响其他订阅者
    """

    def __init__(self) -> None:
        self._listeners: List[StatusListener] = []

    def subscribe(self, fn: StatusListener) -> Callable[[], None]:
        if fn is None:
            raise ValueError("listener cannot be None")
        self._listeners.append(fn)

        def _unsub() -> None:
            try:
                self._listeners.remove(fn)
            except ValueError:
                pass

        return _unsub

    def emit(self, status: str) -> None:
        log.info("status %s", status)
        for fn in list(self._listeners):
            try:
                fn(status)
            except Exception:
                log.exception("status listener failed")

    def listener_count(self) -> int:
        return len(self._listeners)

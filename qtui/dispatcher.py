# qtui/dispatcher.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from PySide6.QtCore import QObject, Signal, Slot

log = logging.getLogger(__name__)


class QtDispatcher(QObject):
    """
    UI 线程调度器：
    - call_soon(fn)：任意线程调用，fn 排队到 Qt 主线程执行
    - spawn(coro)：Qt 槽函数里启动 core 的协程（QtAsyncio 事件循环上的 Task），
      异常只记日志，不会冒到 Qt 事件循环里
    """

    _sig_call = Signal(object)  # fn: Callable[[], None]

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._sig_call.connect(self._on_call)
        self._tasks: set[asyncio.Task] = set()

    def call_soon(self, fn: Callable[[], None]) -> None:
        if fn is None:
            return
        self._sig_call.emit(fn)

    def spawn(
        self,
        coro: Awaitable[Any],
        *,
        on_done: Optional[Callable[[Any], None]] = None,
        label: str = "task",
    ) -> asyncio.Task:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = asyncio.get_event_loop_policy().get_event_loop()
        task = loop.create_task(coro)  # type: ignore[arg-type]
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                log.info("%s cancelled", label)
                return
            err = t.exception()
            if err is not None:
                log.error("%s failed", label, exc_info=err)
                return
            if on_done is not None:
                try:
                    on_done(t.result())
                except Exception:
                    log.exception("%s on_done callback failed", label)

        task.add_done_callback(_done)
        return task

    @Slot(object)
    def _on_call(self, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception:
            # 不让异常终止事件循环
            log.exception("dispatched call failed")

# core/app/session.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from core.models.geometry import Point
from core.platform import OverlayHandle, WindowHandle


@dataclass(eq=False)
class PendingPick:
    """
    一次进行中的取点请求。future 就是返回给所有并发调用方的同一个对象。
    """
    future: "asyncio.Future[Optional[Point]]"
    corr_id: str = "-"
    task: Optional["asyncio.Task[None]"] = None
    timer: Optional[asyncio.TimerHandle] = None


@dataclass
class SessionState:
    """
    进程级运行状态（RunState），由 CoreService 持有并按引用传给各组件。

    写入方约定：
    - overlay：只由 OverlayManager 写；其他组件通过 manager 的只读访问器读取
    - active_pick：只由 PickCoordinator 写；仅在一次取点往返进行中非 None
    - batch_running：只由 BatchRunner 写；从开始到 finally 清理之间为 True
    """
    main_window: Optional[WindowHandle] = None
    overlay: Optional[OverlayHandle] = field(default=None, repr=False)
    batch_running: bool = False
    active_pick: Optional[PendingPick] = None

    def main_window_alive(self) -> bool:
        w = self.main_window
        if w is None:
            return False
        try:
            return not w.is_destroyed()
        except Exception:
            return False

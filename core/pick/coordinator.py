# core/pick/coordinator.py
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.app.session import PendingPick, SessionState
from core.errors import LoadFailure, PickTimeout, WindowUnavailable
from core.logging_context import log_context, new_corr_id
from core.models.geometry import OverlayMode, Point
from core.models.settings import Timings
from core.overlay.lifecycle import OverlayManager
from core.retry import Sleep, fixed_delay_ms, retry_bounded
from core import status as st

log = logging.getLogger(__name__)

TIMEOUT_MSG = "操作超时，请重试"
UNREACHABLE_MSG = "连接服务失败，请检查开发服务器是否启动"
GENERIC_LOAD_MSG = "覆盖层窗口加载失败"

_UNREACHABLE_MARKERS = ("ERR_CONNECTION_REFUSED", "ERR_FAILED", "CONNECTION REFUSED")


def is_unreachable(err: Optional[BaseException]) -> bool:
    """
    “服务连不上”与一般加载失败分开提示。
    """
    if err is None:
        return False
    if isinstance(err, ConnectionError):
        return True
    text = str(err).upper()
    return any(m in text for m in _UNREACHABLE_MARKERS)


class PickCoordinator:
    """
    取点：Idle -> Requesting -> (Picked | TimedOut | LoadFailed | Cancelled) -> Idle

    - pick_point() 返回 Future；进行中再次调用拿到的是同一个 Future（去重）
    - 所有结束路径都经过 _finish()：只有仍占着 state.active_pick 的那一方能生效，
      其余（例如与点击同一 tick 触发的超时）直接忽略
    - 主窗口只在覆盖层确认可见之后才隐藏
    """

    def __init__(
        self,
        *,
        state: SessionState,
        overlays: OverlayManager,
        status: st.StatusChannel,
        timings: Timings,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._state = state
        self._overlays = overlays
        self._status = status
        self._t = timings
        self._sleep = sleep

    @property
    def phase(self) -> str:
        return "requesting" if self._state.active_pick is not None else "idle"

    # ---------- 外部 API ----------

    def pick_point(self) -> "asyncio.Future[Optional[Point]]":
        current = self._state.active_pick
        if current is not None and not current.future.done():
            log.info("pick already in flight, joining corr=%s", current.corr_id)
            return current.future

        loop = asyncio.get_running_loop()
        pending = PendingPick(future=loop.create_future(), corr_id=new_corr_id())
        self._state.active_pick = pending

        with log_context(corr_id=pending.corr_id, action="pick"):
            log.info("pick requested")
            pending.timer = loop.call_later(self._t.pick_timeout_ms / 1000.0, self._on_timeout, pending)
            pending.future.add_done_callback(lambda _f: self._on_future_done(pending))
            pending.task = loop.create_task(self._run(pending))
        return pending.future

    def point_picked(self, point: Point) -> bool:
        pending = self._state.active_pick
        if pending is None:
            log.info("point-picked with no pending pick, ignored: %s", point)
            return False
        with log_context(corr_id=pending.corr_id, action="pick"):
            log.info("point picked %s", point.to_dict())
            return self._finish(pending, point)

    def cancel(self) -> bool:
        pending = self._state.active_pick
        if pending is None:
            return False
        with log_context(corr_id=pending.corr_id, action="pick"):
            log.info("pick cancelled")
            return self._finish(pending, None, status=st.CANCELLED)

    # ---------- 流程 ----------

    async def _run(self, pending: PendingPick) -> None:
        try:
            self._overlays.ensure_overlay_closed()
            ov = self._overlays.create_overlay(OverlayMode.PICK)

            # 加载（含重试）+ 等待页面挂上点击处理，整体受 page ready 超时约束；
            # 超时只记日志，照常显示
            try:
                await asyncio.wait_for(
                    self._load_and_settle(pending, ov),
                    timeout=self._t.page_ready_timeout_ms / 1000.0,
                )
            except asyncio.TimeoutError:
                log.warning("page ready timeout (%d ms) exceeded, showing overlay anyway", self._t.page_ready_timeout_ms)

            if not self._is_current(pending):
                return
            if ov.is_destroyed():
                raise WindowUnavailable(GENERIC_LOAD_MSG)

            if self._overlays.show_overlay(ov):
                self._overlays.hide_main_window()
                log.info("pick overlay shown")
            else:
                log.warning("pick overlay still not visible; main window kept visible")

        except asyncio.CancelledError:
            raise
        except LoadFailure as e:
            log.error("overlay load failed after retries: %s (cause=%r)", e, e.cause)
            self._finish(pending, None, status=st.pick_point_failed(str(e)))
        except Exception as e:
            log.exception("pick flow failed")
            self._finish(pending, None, status=st.pick_point_failed(str(e) or GENERIC_LOAD_MSG))

    async def _load_and_settle(self, pending: PendingPick, ov) -> None:
        async def _load(_n: int) -> None:
            await ov.load()

        res = await retry_bounded(
            _load,
            max_attempts=self._t.load_attempts,
            delay_fn=fixed_delay_ms(self._t.load_retry_delay_ms),
            should_abort=ov.is_destroyed,
            sleep=self._sleep,
            label="overlay load",
        )
        if not self._is_current(pending):
            return
        if not res.ok:
            msg = UNREACHABLE_MSG if is_unreachable(res.error) else GENERIC_LOAD_MSG
            raise LoadFailure(msg, unreachable=is_unreachable(res.error), cause=res.error)

        await self._sleep(self._t.pick_settle_ms / 1000.0)

    def _on_timeout(self, pending: PendingPick) -> None:
        if not self._is_current(pending):
            return
        err = PickTimeout(TIMEOUT_MSG, timeout_ms=self._t.pick_timeout_ms)
        log.warning("pick timed out after %d ms", err.timeout_ms)
        self._finish(pending, None, status=st.pick_point_failed(str(err)))

    def _on_future_done(self, pending: PendingPick) -> None:
        # 调用方把 Future 取消了：按取消收尾，保证覆盖层不残留
        if pending.future.cancelled() and self._is_current(pending):
            log.info("pick future cancelled by caller")
            self._finish(pending, None, status=st.CANCELLED)

    # ---------- 收尾（恰好一次） ----------

    def _is_current(self, pending: PendingPick) -> bool:
        return self._state.active_pick is pending

    def _finish(self, pending: PendingPick, value: Optional[Point], *, status: Optional[str] = None) -> bool:
        if not self._is_current(pending):
            return False
        self._state.active_pick = None

        if pending.timer is not None:
            pending.timer.cancel()
        task = pending.task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

        self._overlays.ensure_overlay_closed()
        self._overlays.ensure_main_window_visible()
        if status:
            self._status.emit(status)

        if not pending.future.done():
            pending.future.set_result(value)
        return True

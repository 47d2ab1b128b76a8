# core/app/service.py
from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Awaitable, Callable, Dict, Optional

from core.app.session import SessionState
from core.batch.runner import BatchRunner
from core.capture.pipeline import CapturePipeline
from core.errors import InvalidInput
from core.logging_context import log_context, new_corr_id
from core.models.geometry import DisplayInfo, OverlayMode, Point, Rect
from core.models.settings import Timings
from core.overlay.lifecycle import OverlayManager
from core.pick.coordinator import GENERIC_LOAD_MSG, UNREACHABLE_MSG, PickCoordinator, is_unreachable
from core.platform import ClipboardBackend, DisplayProvider, InputDriver, OverlayFactory, ScreenGrabber
from core.repos.last_rect_repo import LastRectRepo
from core.retry import Sleep, fixed_delay_ms, retry_bounded
from core import status as st

log = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[Any]]


def _coerce_rect(v: Any) -> Optional[Rect]:
    if isinstance(v, Rect):
        return v
    return Rect.from_dict(v)


def _coerce_point(v: Any) -> Optional[Point]:
    if isinstance(v, Point):
        return v
    return Point.from_dict(v)


class CoreService:
    """
    控制面 / 覆盖层内容 <-> core 的请求边界。

    invoke(name, payload) 按名字分发到异步操作；状态通过 self.status 推送。
    所有组件共享同一个 SessionState（按引用传入），单实例约束都能在这里检查：
    一个覆盖层、一个进行中的取点、一个运行中的批量。
    """

    def __init__(
        self,
        *,
        display: DisplayProvider,
        overlay_factory: OverlayFactory,
        grabber: ScreenGrabber,
        clipboard: ClipboardBackend,
        input_driver: InputDriver,
        last_rect: LastRectRepo,
        timings: Optional[Timings] = None,
        state: Optional[SessionState] = None,
        status: Optional[st.StatusChannel] = None,
        sleep: Sleep = asyncio.sleep,
        platform: str = sys.platform,
    ) -> None:
        self.state = state if state is not None else SessionState()
        self.status = status if status is not None else st.StatusChannel()
        self.timings = timings if timings is not None else Timings()
        self._display = display
        self._last_rect = last_rect
        self._sleep = sleep
        self._opening = False

        self.overlays = OverlayManager(
            state=self.state,
            factory=overlay_factory,
            display=display,
            request=self.invoke,
        )
        self.pipeline = CapturePipeline(
            overlays=self.overlays,
            display=display,
            grabber=grabber,
            clipboard=clipboard,
            last_rect=last_rect,
            status=self.status,
            timings=self.timings,
            sleep=sleep,
        )
        self.picker = PickCoordinator(
            state=self.state,
            overlays=self.overlays,
            status=self.status,
            timings=self.timings,
            sleep=sleep,
        )
        self.batch = BatchRunner(
            state=self.state,
            overlays=self.overlays,
            display=display,
            pipeline=self.pipeline,
            input_driver=input_driver,
            last_rect=last_rect,
            status=self.status,
            timings=self.timings,
            sleep=sleep,
            platform=platform,
        )

        self._handlers: Dict[str, Handler] = {
            "open-overlay": self._open_overlay,
            "close-overlay": self._close_overlay,
            "get-last-rect": self._get_last_rect,
            "set-last-rect": self._set_last_rect,
            "capture-region": self._capture_region,
            "finish-capture": self._finish_capture,
            "pick-point": self._pick_point,
            "point-picked": self._point_picked,
            "start-batch": self._start_batch,
            "stop-batch": self._stop_batch,
            "get-primary-display-info": self._get_primary_display_info,
            "dip-to-screen-rect": self._dip_to_screen_rect,
            "emit-status": self._emit_status,
            "emit-log": self._emit_log,
        }

    @property
    def operations(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    def attach_main_window(self, window) -> None:
        self.state.main_window = window

    async def invoke(self, name: str, payload: Any = None) -> Any:
        handler = self._handlers.get(name)
        if handler is None:
            raise InvalidInput(f"unknown operation: {name!r}")
        log.debug("invoke %s", name)
        return await handler(payload)

    def shutdown(self) -> None:
        """
        退出前收尾：取消取点、停止批量、关闭覆盖层。
        """
        self.picker.cancel()
        if self.state.batch_running:
            self.batch.stop_batch()
        self.overlays.ensure_overlay_closed()

    # ---------- overlay ----------

    async def _open_overlay(self, _payload: Any) -> None:
        if self._opening:
            log.info("open-overlay already in progress, ignored")
            return
        self._opening = True
        try:
            with log_context(corr_id=new_corr_id(), action="open-overlay"):
                await self._open_crop_overlay()
        finally:
            self._opening = False

    async def _open_crop_overlay(self) -> None:
        # 取点进行中时先按取消收尾，覆盖层模式不能中途切换
        self.picker.cancel()

        ov = self.overlays.overlay
        if ov is not None and self.overlays.overlay_usable() and ov.mode is OverlayMode.CROP:
            ov.reset_state()
        else:
            self.overlays.ensure_overlay_closed()
            ov = self.overlays.create_overlay(OverlayMode.CROP)

            async def _load(_n: int) -> None:
                await ov.load()

            res = await retry_bounded(
                _load,
                max_attempts=self.timings.load_attempts,
                delay_fn=fixed_delay_ms(self.timings.load_retry_delay_ms),
                should_abort=ov.is_destroyed,
                sleep=self._sleep,
                label="crop overlay load",
            )
            if not res.ok:
                msg = UNREACHABLE_MSG if is_unreachable(res.error) else GENERIC_LOAD_MSG
                log.error("crop overlay load failed: %s (cause=%r)", msg, res.error)
                self.overlays.ensure_overlay_closed()
                self.overlays.ensure_main_window_visible()
                self.status.emit(st.overlay_failed(msg))
                return

        if self.overlays.show_overlay(ov):
            self.overlays.hide_main_window()
        else:
            log.warning("crop overlay not visible after show; main window kept visible")

    async def _close_overlay(self, _payload: Any) -> None:
        if self.picker.cancel():
            return
        self.overlays.ensure_overlay_closed()
        self.overlays.ensure_main_window_visible()
        self.status.emit(st.CANCELLED)

    async def _finish_capture(self, _payload: Any) -> None:
        self.overlays.ensure_overlay_closed()
        self.overlays.ensure_main_window_visible()

    # ---------- last rect ----------

    async def _get_last_rect(self, _payload: Any) -> Optional[Rect]:
        return self._last_rect.load()

    async def _set_last_rect(self, payload: Any) -> None:
        rect = _coerce_rect(payload)
        if rect is None:
            log.debug("set-last-rect ignored malformed input: %r", payload)
            return
        self._last_rect.save(rect)

    # ---------- capture ----------

    async def _capture_region(self, payload: Any) -> None:
        rect = _coerce_rect(payload)
        if rect is None:
            log.warning("capture-region ignored malformed input: %r", payload)
            return
        await self.pipeline.capture_and_copy(rect)

    # ---------- pick ----------

    async def _pick_point(self, _payload: Any) -> Optional[Point]:
        # shield：某个调用方被取消时不影响共享同一 Future 的其他调用方
        return await asyncio.shield(self.picker.pick_point())

    async def _point_picked(self, payload: Any) -> None:
        point = _coerce_point(payload)
        if point is None:
            log.warning("point-picked ignored malformed input: %r", payload)
            return
        self.picker.point_picked(point)

    # ---------- batch ----------

    async def _start_batch(self, payload: Any) -> None:
        self.batch.start_batch(payload)

    async def _stop_batch(self, _payload: Any) -> None:
        self.batch.stop_batch()

    # ---------- display ----------

    async def _get_primary_display_info(self, _payload: Any) -> DisplayInfo:
        return self._display.primary_display()

    async def _dip_to_screen_rect(self, payload: Any) -> Rect:
        rect = _coerce_rect(payload)
        if rect is None:
            raise InvalidInput(f"dip-to-screen-rect: invalid rect {payload!r}")
        return self._display.dip_to_screen_rect(rect, None)

    # ---------- overlay content forwarding ----------

    async def _emit_status(self, payload: Any) -> None:
        if isinstance(payload, str) and payload:
            self.status.emit(payload)

    async def _emit_log(self, payload: Any) -> None:
        log.info("[overlay] %s", payload)

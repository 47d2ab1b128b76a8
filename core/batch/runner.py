# core/batch/runner.py
from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Optional

from core.app.session import SessionState
from core.capture.pipeline import CapturePipeline
from core.errors import InvalidInput, NoCropRegion
from core.geometry import to_physical_crop_region
from core.input.keys import PASTE_KEY, paste_modifier
from core.logging_context import log_context, new_corr_id
from core.models.batch import BatchConfig
from core.models.geometry import Point
from core.models.settings import Timings
from core.overlay.lifecycle import OverlayManager
from core.platform import DisplayProvider, InputDriver
from core.repos.last_rect_repo import LastRectRepo
from core.retry import Sleep
from core import status as st

log = logging.getLogger(__name__)

BUSY_MSG = "上一轮批量仍在收尾，请稍后再试"


class BatchRunner:
    """
    批量：点右侧来源 -> 截图进剪贴板 -> 点左侧目标 -> 粘贴，重复 loop_count 次。

    - 进程内同时只允许一个批量；上一次 stop 后仍在收尾的迭代也算“运行中”
    - 停止只在每次迭代开头检查；已开始的迭代会把输入序列完整发完
    - 从第 2 次迭代起才下移（先右后左），第 1 次使用原始坐标
    - 无论成功 / 停止 / 出错，finally 都会恢复主窗口
    """

    def __init__(
        self,
        *,
        state: SessionState,
        overlays: OverlayManager,
        display: DisplayProvider,
        pipeline: CapturePipeline,
        input_driver: InputDriver,
        last_rect: LastRectRepo,
        status: st.StatusChannel,
        timings: Timings,
        sleep: Sleep = asyncio.sleep,
        platform: str = sys.platform,
    ) -> None:
        self._state = state
        self._overlays = overlays
        self._display = display
        self._pipeline = pipeline
        self._input = input_driver
        self._last_rect = last_rect
        self._status = status
        self._t = timings
        self._sleep = sleep
        self._modifier = paste_modifier(platform)

        self._task: Optional["asyncio.Task[None]"] = None
        self._config: Optional[BatchConfig] = None

    @property
    def running(self) -> bool:
        return self._state.batch_running or (self._task is not None and not self._task.done())

    @property
    def task(self) -> Optional["asyncio.Task[None]"]:
        return self._task

    @property
    def config(self) -> Optional[BatchConfig]:
        """最近一次运行的配置（运行中会被原地修改）。"""
        return self._config

    # ---------- 外部 API ----------

    def start_batch(self, raw: Any) -> Optional["asyncio.Task[None]"]:
        if self.running:
            log.warning("batch already running, start refused")
            if not self._state.batch_running:
                # 已停止、当前迭代仍在收尾
                self._status.emit(st.batch_error(BUSY_MSG))
            return None

        try:
            cfg = BatchConfig.parse(raw)
        except InvalidInput as e:
            log.warning("batch config rejected: %s", e)
            self._status.emit(st.batch_error(str(e)))
            return None

        self._state.batch_running = True
        self._config = cfg
        with log_context(corr_id=new_corr_id(), action="batch"):
            log.info("batch start %s", cfg.to_dict())
            self._task = asyncio.get_running_loop().create_task(self._run(cfg))
        return self._task

    def stop_batch(self) -> None:
        if self._state.batch_running:
            log.info("batch stop requested")
        else:
            log.debug("batch stop requested while idle")
        self._state.batch_running = False
        self._status.emit(st.BATCH_STOPPED)

    # ---------- 主循环 ----------

    async def _run(self, cfg: BatchConfig) -> None:
        try:
            self._overlays.minimize_main_window()

            rect = self._last_rect.load()
            if rect is None or rect.is_empty:
                raise NoCropRegion()

            # 运行期间认为显示器几何不变，只算一次
            display = self._display.primary_display()
            region = to_physical_crop_region(rect, display.bounds, self._display, inset=self._t.crop_inset)
            log.info("batch region=%s scale=%s", region.to_dict(), display.scale_factor)

            total = cfg.loop_count
            for i in range(1, total + 1):
                if not self._state.batch_running:
                    log.info("batch stopped before iteration %d/%d", i, total)
                    break

                self._status.emit(st.batch_progress(i, total))

                if i > 1:
                    if cfg.right_offset_distance > 0:
                        cfg.right_source_pos.y += cfg.right_offset_distance
                    if cfg.left_offset_distance > 0:
                        cfg.left_source_pos.y += cfg.left_offset_distance

                await self._click(cfg.right_source_pos)
                await self._pipeline.capture_once(region, display)
                await self._click(cfg.left_source_pos)
                await self._paste()
            else:
                log.info("batch complete, final left=%s right=%s", cfg.left_source_pos, cfg.right_source_pos)
                self._status.emit(st.BATCH_COMPLETE)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.exception("batch failed")
            self._status.emit(st.batch_error(str(e) or type(e).__name__))
        finally:
            self._state.batch_running = False
            self._overlays.ensure_main_window_visible()

    async def _click(self, pos: Point) -> None:
        self._input.move_to(pos.x, pos.y)
        self._input.left_click()
        await self._sleep(self._t.click_settle_ms / 1000.0)

    async def _paste(self) -> None:
        self._input.key_down(self._modifier)
        try:
            self._input.key_down(PASTE_KEY)
            try:
                await self._sleep(self._t.key_hold_ms / 1000.0)
            finally:
                self._input.key_up(PASTE_KEY)
        finally:
            # 修饰键无论如何都要松开
            self._input.key_up(self._modifier)
        await self._sleep(self._t.paste_settle_ms / 1000.0)

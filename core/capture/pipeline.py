# core/capture/pipeline.py
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.capture.frame import CapturedImage, ClipboardSnapshot, frame_to_image
from core.errors import ClipboardFailure, EmptyImage
from core.geometry import to_physical_crop_region
from core.logging_context import log_context, new_corr_id
from core.models.geometry import DisplayInfo, Rect
from core.models.settings import Timings
from core.overlay.lifecycle import OverlayManager
from core.platform import ClipboardBackend, DisplayProvider, ScreenGrabber
from core.repos.last_rect_repo import LastRectRepo
from core.retry import Sleep, linear_backoff_ms, retry_bounded
from core import status as st

log = logging.getLogger(__name__)


class CapturePipeline:
    """
    截图 -> 剪贴板：

    1) 非法 rect 直接返回（无副作用）
    2) 先落盘 last rect，再截图（崩溃也保住用户的选区）
    3) 用此刻的显示器信息换算物理区域（覆盖层还在，作为换算参考窗口）
    4) 隐藏覆盖层并等待合成器刷新，避免把覆盖层边框截进去
    5~7) 抓屏 / 整屏兜底裁剪 / 转 RGBA 并带上缩放因子
    8) 写剪贴板 + 回读校验，线性退避重试；全部失败则恢复原剪贴板
    9) 无论结果如何：关闭覆盖层、恢复主窗口
    """

    def __init__(
        self,
        *,
        overlays: OverlayManager,
        display: DisplayProvider,
        grabber: ScreenGrabber,
        clipboard: ClipboardBackend,
        last_rect: LastRectRepo,
        status: st.StatusChannel,
        timings: Timings,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._overlays = overlays
        self._display = display
        self._grabber = grabber
        self._clipboard = clipboard
        self._last_rect = last_rect
        self._status = status
        self._t = timings
        self._sleep = sleep

    async def capture_and_copy(self, rect: Optional[Rect]) -> bool:
        if rect is None or rect.is_empty:
            log.warning("capture rejected, invalid rect: %s", rect)
            return False

        with log_context(corr_id=new_corr_id(), action="capture"):
            self._status.emit(st.CAPTURING)
            ok = False
            try:
                self._last_rect.save(rect)

                display = self._display.primary_display()
                region = to_physical_crop_region(
                    rect,
                    display.bounds,
                    self._display,
                    inset=self._t.crop_inset,
                    window=self._overlays.overlay,
                )
                log.info(
                    "rectDip=%s display=%s scale=%s absScreenCrop=%s",
                    rect.to_dict(), display.bounds.to_dict(), display.scale_factor, region.to_dict(),
                )

                self._overlays.hide_overlay()
                await self._sleep(self._t.hide_settle_ms / 1000.0)

                image = await self.grab_image(region, display)
                await self._copy_with_verify(image)
                ok = True
            except ClipboardFailure as e:
                log.error("clipboard verify failed after %d attempts: %s", e.attempts, e)
                ok = False
            except Exception:
                log.exception("capture failed")
                ok = False
            finally:
                self._overlays.ensure_overlay_closed()
                self._overlays.ensure_main_window_visible()

            self._status.emit(st.COPIED if ok else st.COPY_FAILED)
            return ok

    async def capture_once(self, region: Rect, display: DisplayInfo) -> CapturedImage:
        """
        批量循环用：抓屏 -> 兜底裁剪 -> 包装 -> 单次写剪贴板，不做回读重试。
        """
        image = await self.grab_image(region, display)
        self._clipboard.write_image(image)
        return image

    async def grab_image(self, region: Rect, display: DisplayInfo) -> CapturedImage:
        frame = await self._grabber.grab(region)
        log.info("grabbed %dx%d bytes=%d", frame.width, frame.height, len(frame.data))
        image = frame_to_image(
            frame,
            region,
            scale_factor=display.scale_factor,
            slack_px=self._t.crop_slack_px,
        )
        if image.is_empty:
            raise EmptyImage()
        return image

    # ---------- clipboard ----------

    async def _copy_with_verify(self, image: CapturedImage) -> None:
        snapshot = self._clipboard.snapshot()

        # 部分平台要求进程有可见窗口才能拿到剪贴板所有权
        self._overlays.show_main_window_inactive()

        backoff = linear_backoff_ms(self._t.clipboard_backoff_step_ms, self._t.clipboard_backoff_cap_ms)

        async def attempt(n: int) -> tuple[int, int]:
            self._clipboard.write_image(image)
            await self._sleep(backoff(n))
            size = self._clipboard.read_image_size()
            log.info(
                "clipboard attempt=%d formats=%s size=%dx%d",
                n, list(self._clipboard.available_formats()), size[0], size[1],
            )
            return size

        res = await retry_bounded(
            attempt,
            max_attempts=self._t.clipboard_attempts,
            predicate=lambda size: size[0] > 0 and size[1] > 0,
            sleep=self._sleep,
            label="clipboard",
        )
        if res.ok:
            return

        self._restore_clipboard(snapshot)
        raise ClipboardFailure(attempts=res.attempts)

    def _restore_clipboard(self, snapshot: ClipboardSnapshot) -> None:
        log.warning(
            "clipboard restore beforeFormats=%s prevImage=%s prevTextLen=%d",
            list(snapshot.formats), snapshot.image is not None, len(snapshot.text or ""),
        )
        try:
            if snapshot.image is not None:
                self._clipboard.restore_image(snapshot)
            elif snapshot.text or snapshot.html:
                self._clipboard.write_text(snapshot.text, snapshot.html)
            else:
                # 原本是空的：不能把最后一次失败的写入留在剪贴板上
                self._clipboard.clear()
        except Exception:
            log.exception("clipboard restore failed")

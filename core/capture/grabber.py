from __future__ import annotations

import logging
from typing import Optional

import mss
from mss.base import MSSBase
from mss.exception import ScreenShotError

from core.capture.frame import RawFrame
from core.errors import CaptureFailure
from core.models.geometry import Rect

log = logging.getLogger(__name__)


class MssScreenGrabber:
    """
    Screen grabber backed by mss.

    - One lazily created mss.mss() instance; the core runs on a single event
      loop thread, so no thread-local bookkeeping is needed.
    - close(): release the instance; safe to call multiple times, the next
      grab() re-creates it.
    - mss always returns BGRA, declared on the frame so the conversion to
      RGBA stays explicit.
    """

    channel_order = "BGRA"

    def __init__(self) -> None:
        self._sct: Optional[MSSBase] = None

    def _get_sct(self) -> MSSBase:
        if self._sct is None:
            self._sct = mss.mss()
        return self._sct

    def close(self) -> None:
        sct = self._sct
        self._sct = None
        if sct is not None:
            try:
                sct.close()
            except Exception:
                log.debug("mss close failed", exc_info=True)

    async def grab(self, region: Rect) -> RawFrame:
        if region.is_empty:
            raise CaptureFailure(f"empty grab region: {region}")
        box = {
            "left": int(region.x),
            "top": int(region.y),
            "width": int(region.width),
            "height": int(region.height),
        }
        try:
            shot = self._get_sct().grab(box)
        except ScreenShotError as e:
            # 句柄失效（显示器热插拔等）时下次重建
            self.close()
            raise CaptureFailure(f"screen grab failed: {e}") from e

        return RawFrame(
            data=bytes(shot.bgra),
            width=int(shot.width),
            height=int(shot.height),
            left=int(shot.left),
            top=int(shot.top),
            channel_order=self.channel_order,
        )

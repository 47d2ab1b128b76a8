# qtui/overlay/handle.py
from __future__ import annotations

from PySide6.QtCore import Qt

from core.models.geometry import OverlayMode, Rect
from core.platform import RequestFn
from qtui.adapters import QtDisplayProvider, QtWindowHandle
from qtui.dispatcher import QtDispatcher
from qtui.overlay.window import OverlayWindow


class QtOverlayHandle(QtWindowHandle):
    """OverlayWindow 的 OverlayHandle 实现。"""

    def __init__(self, window: OverlayWindow) -> None:
        super().__init__(window)
        self._window = window

    @property
    def mode(self) -> OverlayMode:
        return self._window.mode

    async def load(self) -> None:
        if self.is_destroyed():
            raise RuntimeError("overlay window destroyed before load")
        await self._window.load_content()

    def set_always_on_top(self, on: bool) -> None:
        if self.is_destroyed():
            return
        w = self._window
        if bool(w.windowFlags() & Qt.WindowStaysOnTopHint) == bool(on):
            return
        # 改 flags 会隐藏窗口，之后需要重新 show
        w.setWindowFlag(Qt.WindowStaysOnTopHint, bool(on))

    def raise_to_top(self) -> None:
        if not self.is_destroyed():
            self._window.raise_()

    def reset_state(self) -> None:
        if not self.is_destroyed():
            self._window.reset_state()


class QtOverlayFactory:
    def __init__(self, *, dispatcher: QtDispatcher, display: QtDisplayProvider) -> None:
        self._dispatcher = dispatcher
        self._display = display

    def create(self, mode: OverlayMode, bounds: Rect, request: RequestFn) -> QtOverlayHandle:
        win = OverlayWindow(
            mode=mode,
            bounds=bounds,
            request=request,
            dispatcher=self._dispatcher,
            to_physical=self._display.screen_to_physical,
        )
        return QtOverlayHandle(win)

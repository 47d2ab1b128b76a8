# core/overlay/lifecycle.py
from __future__ import annotations

import logging
from typing import Optional

from core.app.session import SessionState
from core.models.geometry import OverlayMode
from core.platform import DisplayProvider, OverlayFactory, OverlayHandle, RequestFn

log = logging.getLogger(__name__)


class OverlayManager:
    """
    覆盖层窗口生命周期：

    - 进程内最多一个覆盖层实例；state.overlay 只有这里会写
    - 对外约定：overlay 引用非 None <=> 覆盖层可用；
      因此关闭时无论 close() 是否抛异常，都会清掉引用
    - 主窗口恢复（取消最小化 / 显示 / 聚焦 / 缩放归一）也在这里，
      所有错误路径都会走到它
    """

    def __init__(
        self,
        *,
        state: SessionState,
        factory: OverlayFactory,
        display: DisplayProvider,
        request: Optional[RequestFn] = None,
    ) -> None:
        self._state = state
        self._factory = factory
        self._display = display
        self._request = request

    def bind_request(self, request: RequestFn) -> None:
        self._request = request

    # ---------- 只读访问 ----------

    @property
    def overlay(self) -> Optional[OverlayHandle]:
        return self._state.overlay

    def overlay_usable(self) -> bool:
        ov = self._state.overlay
        if ov is None:
            return False
        try:
            return not ov.is_destroyed()
        except Exception:
            return False

    # ---------- 创建 / 销毁 ----------

    def create_overlay(self, mode: OverlayMode) -> OverlayHandle:
        """
        创建指定模式的覆盖层（不显示，等内容加载完再由调用方 show）。
        已有存活实例时直接返回它，不会出现第二个窗口。
        """
        current = self._state.overlay
        if current is not None:
            if self.overlay_usable():
                if current.mode is not mode:
                    log.warning("overlay already live in %s mode, requested %s", current.mode, mode)
                return current
            log.info("held overlay reference already destroyed, clearing")
            self._state.overlay = None

        if self._request is None:
            raise RuntimeError("OverlayManager.request is not bound")

        bounds = self._display.primary_display().bounds
        ov = self._factory.create(mode, bounds, self._request)
        self._state.overlay = ov
        log.info("overlay created mode=%s bounds=%s", mode, bounds.to_dict())
        return ov

    def ensure_overlay_closed(self) -> None:
        ov = self._state.overlay
        if ov is None:
            return
        try:
            if not ov.is_destroyed():
                ov.close()
        except Exception:
            log.exception("overlay close failed")
        finally:
            self._state.overlay = None

    def hide_overlay(self) -> None:
        if not self.overlay_usable():
            return
        try:
            self._state.overlay.hide()  # type: ignore[union-attr]
        except Exception:
            log.exception("overlay hide failed")

    def show_overlay(self, ov: OverlayHandle) -> bool:
        """
        置顶 -> 显示 -> 聚焦 -> 提到最上层 -> 校验可见；
        不可见时再 show+focus 一次（合成器的显示不一定同步生效）。
        """
        try:
            ov.set_always_on_top(True)
            ov.show()
            ov.focus()
            ov.raise_to_top()
            if not ov.is_visible():
                log.info("overlay not visible after show, retrying once")
                ov.show()
                ov.focus()
            return bool(ov.is_visible())
        except Exception:
            log.exception("overlay show failed")
            return False

    # ---------- 主窗口 ----------

    def ensure_main_window_visible(self) -> None:
        if not self._state.main_window_alive():
            return
        win = self._state.main_window
        assert win is not None
        try:
            if win.is_minimized():
                win.restore()
            if not win.is_visible():
                win.show()
            win.focus()
            # 缩放归一
            win.set_zoom_factor(1.0)
        except Exception:
            log.exception("restore main window failed")

    def hide_main_window(self) -> None:
        if not self._state.main_window_alive():
            return
        try:
            self._state.main_window.hide()  # type: ignore[union-attr]
        except Exception:
            log.exception("hide main window failed")

    def minimize_main_window(self) -> None:
        if not self._state.main_window_alive():
            return
        try:
            self._state.main_window.minimize()  # type: ignore[union-attr]
        except Exception:
            log.exception("minimize main window failed")

    def show_main_window_inactive(self) -> None:
        if not self._state.main_window_alive():
            return
        try:
            self._state.main_window.show_inactive()  # type: ignore[union-attr]
        except Exception:
            log.exception("show main window inactive failed")

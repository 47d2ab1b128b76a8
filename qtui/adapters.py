# qtui/adapters.py
from __future__ import annotations

import logging
from typing import Optional, Tuple

from PySide6.QtCore import QMimeData, QPoint, Qt
from PySide6.QtGui import QGuiApplication, QImage, QScreen
from PySide6.QtWidgets import QWidget

from core.capture.frame import CapturedImage, ClipboardSnapshot
from core.models.geometry import DisplayInfo, Rect

log = logging.getLogger(__name__)


def _screen_index(screen: QScreen) -> int:
    try:
        return QGuiApplication.screens().index(screen)
    except ValueError:
        return 0


class QtWindowHandle:
    """
    把任意顶层 QWidget 包装成 core 的 WindowHandle。

    destroyed 信号或 close() 之后 is_destroyed() 为 True；
    之后所有操作都是 no-op，避免对已删除的 C++ 对象调用方法。
    """

    def __init__(self, widget: QWidget) -> None:
        self._w = widget
        self._destroyed = False
        widget.destroyed.connect(self._on_destroyed)

    @property
    def widget(self) -> QWidget:
        return self._w

    def _on_destroyed(self, *_args) -> None:
        self._destroyed = True

    def is_destroyed(self) -> bool:
        return self._destroyed

    def is_visible(self) -> bool:
        return (not self._destroyed) and self._w.isVisible()

    def is_minimized(self) -> bool:
        return (not self._destroyed) and self._w.isMinimized()

    def show(self) -> None:
        if not self._destroyed:
            self._w.show()

    def show_inactive(self) -> None:
        if self._destroyed:
            return
        self._w.setAttribute(Qt.WA_ShowWithoutActivating, True)
        try:
            self._w.show()
        finally:
            self._w.setAttribute(Qt.WA_ShowWithoutActivating, False)

    def hide(self) -> None:
        if not self._destroyed:
            self._w.hide()

    def focus(self) -> None:
        if not self._destroyed:
            self._w.raise_()
            self._w.activateWindow()

    def restore(self) -> None:
        if not self._destroyed:
            self._w.showNormal()

    def minimize(self) -> None:
        if not self._destroyed:
            self._w.showMinimized()

    def close(self) -> None:
        if self._destroyed:
            return
        self._w.close()
        if self._w.testAttribute(Qt.WA_DeleteOnClose):
            self._destroyed = True

    def set_zoom_factor(self, factor: float) -> None:
        fn = getattr(self._w, "set_zoom_factor", None)
        if callable(fn) and not self._destroyed:
            fn(factor)

    def qt_screen(self) -> Optional[QScreen]:
        if self._destroyed:
            return None
        return self._w.screen()


class QtDisplayProvider:
    """
    QScreen -> DisplayInfo；逻辑坐标按 devicePixelRatio 换算成物理像素。

    Qt 的屏幕几何是逻辑单位，物理原点按 “屏幕逻辑原点 + 相对偏移 * dpr” 计算，
    与 mss 的物理虚拟屏幕坐标对齐（主屏原点为 0,0）。
    """

    def primary_display(self) -> DisplayInfo:
        screen = QGuiApplication.primaryScreen()
        if screen is None:
            raise RuntimeError("no primary screen")
        g = screen.geometry()
        return DisplayInfo(
            id=_screen_index(screen),
            bounds=Rect(g.x(), g.y(), g.width(), g.height()),
            size=(g.width(), g.height()),
            scale_factor=float(screen.devicePixelRatio() or 1.0),
        )

    def _screen_for(self, rect: Rect, window) -> Optional[QScreen]:
        if window is not None:
            fn = getattr(window, "qt_screen", None)
            if callable(fn):
                s = fn()
                if s is not None:
                    return s
        center = QPoint(rect.x + rect.width // 2, rect.y + rect.height // 2)
        return QGuiApplication.screenAt(center) or QGuiApplication.primaryScreen()

    def dip_to_screen_rect(self, rect: Rect, window=None) -> Rect:
        screen = self._screen_for(rect, window)
        if screen is None:
            return rect
        g = screen.geometry()
        dpr = float(screen.devicePixelRatio() or 1.0)
        x = g.x() + round((rect.x - g.x()) * dpr)
        y = g.y() + round((rect.y - g.y()) * dpr)
        return Rect(
            x=int(x),
            y=int(y),
            width=int(round(rect.width * dpr)),
            height=int(round(rect.height * dpr)),
        )

    def screen_to_physical(self, gx: float, gy: float) -> Tuple[int, int]:
        """
        全局逻辑坐标（鼠标事件）-> 物理像素，供取点覆盖层使用。
        """
        screen = QGuiApplication.screenAt(QPoint(int(gx), int(gy))) or QGuiApplication.primaryScreen()
        if screen is None:
            return int(round(gx)), int(round(gy))
        g = screen.geometry()
        dpr = float(screen.devicePixelRatio() or 1.0)
        return int(round(g.x() + (gx - g.x()) * dpr)), int(round(g.y() + (gy - g.y()) * dpr))


class QtClipboard:
    """
    QClipboard 适配：图片以 RGBA8888 写入并带上 devicePixelRatio。
    """

    def _cb(self):
        return QGuiApplication.clipboard()

    def write_image(self, image: CapturedImage) -> None:
        w, h = image.size
        data = image.rgba_bytes()
        # copy()：QImage 不持有 bytes，必须在 data 释放前深拷贝
        qimg = QImage(data, w, h, w * 4, QImage.Format_RGBA8888).copy()
        qimg.setDevicePixelRatio(float(image.scale_factor or 1.0))
        self._cb().setImage(qimg)

    def read_image_size(self) -> Tuple[int, int]:
        img = self._cb().image()
        if img.isNull():
            return (0, 0)
        return (img.width(), img.height())

    def available_formats(self) -> Tuple[str, ...]:
        md = self._cb().mimeData()
        if md is None:
            return ()
        return tuple(md.formats())

    def snapshot(self) -> ClipboardSnapshot:
        cb = self._cb()
        img = cb.image()
        md = cb.mimeData()
        html = md.html() if md is not None and md.hasHtml() else ""
        return ClipboardSnapshot(
            image=None if img.isNull() else img.copy(),
            text=cb.text() or "",
            html=html or "",
            formats=self.available_formats(),
        )

    def restore_image(self, snapshot: ClipboardSnapshot) -> None:
        if snapshot.image is None:
            return
        self._cb().setImage(snapshot.image)

    def write_text(self, text: str, html: str = "") -> None:
        md = QMimeData()
        if text:
            md.setText(text)
        if html:
            md.setHtml(html)
        self._cb().setMimeData(md)

    def clear(self) -> None:
        self._cb().clear()

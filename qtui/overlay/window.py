# qtui/overlay/window.py
from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple

from PySide6.QtCore import QPoint, QRect, Qt
from PySide6.QtGui import QColor, QKeyEvent, QMouseEvent, QPainter, QPen
from PySide6.QtWidgets import QHBoxLayout, QPushButton, QWidget

from core.models.geometry import OverlayMode, Rect
from core.platform import RequestFn
from qtui.dispatcher import QtDispatcher

log = logging.getLogger(__name__)

DEFAULT_CROP = QRect(120, 120, 360, 240)
MIN_CROP = 50
HANDLE = 12

# 完全透明的像素在部分平台上会把鼠标事件穿透给下面的窗口
_NEAR_CLEAR = QColor(0, 0, 0, 1)
_DIM = QColor(0, 0, 0, 90)
_PICK_DIM = QColor(0, 0, 0, 40)
_BORDER = QColor(0, 150, 255)


class OverlayWindow(QWidget):
    """
    全屏覆盖层内容：

    - CROP：可拖动 / 右下角缩放的裁剪框，确定 -> capture-region，取消 / ESC -> close-overlay
    - PICK：半透明遮罩，左键单击 -> point-picked（物理像素），右键 / ESC -> close-overlay

    所有动作都只是向 core 发请求；关闭 / 隐藏由 core 决定。
    """

    def __init__(
        self,
        *,
        mode: OverlayMode,
        bounds: Rect,
        request: RequestFn,
        dispatcher: QtDispatcher,
        to_physical: Callable[[float, float], Tuple[int, int]],
    ) -> None:
        super().__init__(None)
        self._mode = mode
        self._request = request
        self._dispatcher = dispatcher
        self._to_physical = to_physical

        self.setWindowFlags(Qt.FramelessWindowHint | Qt.WindowStaysOnTopHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WA_DeleteOnClose, True)
        self.setFocusPolicy(Qt.StrongFocus)
        self.setGeometry(bounds.x, bounds.y, bounds.width, bounds.height)

        self._crop = QRect(DEFAULT_CROP)
        self._drag: Optional[str] = None  # "move" | "resize"
        self._drag_offset = QPoint(0, 0)
        self._submitting = False
        self._loaded = False

        self._bar: Optional[QWidget] = None
        self._btn_ok: Optional[QPushButton] = None
        self._btn_cancel: Optional[QPushButton] = None

        if mode is OverlayMode.CROP:
            self.setCursor(Qt.SizeAllCursor)
            self._build_action_bar()
        else:
            self.setCursor(Qt.CrossCursor)

        self.hide()

    @property
    def mode(self) -> OverlayMode:
        return self._mode

    @property
    def crop_rect(self) -> Rect:
        r = self._crop
        return Rect(r.x(), r.y(), r.width(), r.height())

    # ---------- 加载 / 重置 ----------

    async def load_content(self) -> None:
        if self._mode is OverlayMode.CROP:
            await self._apply_last_rect()
        self._loaded = True
        self.update()

    def reset_state(self) -> None:
        self._submitting = False
        self._drag = None
        self._set_buttons_enabled(True)
        if self._mode is OverlayMode.CROP:
            self._dispatcher.spawn(self._apply_last_rect(), label="overlay reset")
        self.update()

    async def _apply_last_rect(self) -> None:
        last = await self._request("get-last-rect", None)
        if isinstance(last, Rect) and not last.is_empty:
            self._crop = QRect(last.x, last.y, last.width, last.height)
        self._layout_action_bar()
        self.update()

    # ---------- 动作 ----------

    def _send(self, name: str, payload=None) -> None:
        self._dispatcher.spawn(self._request(name, payload), label=f"overlay {name}")

    def _confirm(self) -> None:
        if self._submitting or self._mode is not OverlayMode.CROP:
            return
        self._submitting = True
        self._set_buttons_enabled(False)
        self._send("capture-region", self.crop_rect.to_dict())

    def _cancel(self) -> None:
        if self._submitting:
            return
        self._send("close-overlay")

    # ---------- 工具栏 ----------

    def _build_action_bar(self) -> None:
        bar = QWidget(self)
        lay = QHBoxLayout(bar)
        lay.setContentsMargins(0, 0, 0, 0)
        lay.setSpacing(6)

        self._btn_ok = QPushButton("确定", bar)
        self._btn_cancel = QPushButton("取消", bar)
        self._btn_ok.clicked.connect(self._confirm)
        self._btn_cancel.clicked.connect(self._cancel)
        lay.addWidget(self._btn_ok)
        lay.addWidget(self._btn_cancel)

        bar.adjustSize()
        self._bar = bar
        self._layout_action_bar()

    def _layout_action_bar(self) -> None:
        if self._bar is None:
            return
        sz = self._bar.sizeHint()
        x = self._crop.right() - sz.width()
        y = self._crop.bottom() + 8
        if y + sz.height() > self.height():
            y = self._crop.top() - sz.height() - 8
        x = max(0, min(x, self.width() - sz.width()))
        y = max(0, y)
        self._bar.setGeometry(x, y, sz.width(), sz.height())

    def _set_buttons_enabled(self, on: bool) -> None:
        if self._btn_ok is not None:
            self._btn_ok.setEnabled(on)
            self._btn_ok.setText("确定" if on else "处理中...")
        if self._btn_cancel is not None:
            self._btn_cancel.setEnabled(on)

    # ---------- 绘制 ----------

    def paintEvent(self, _event) -> None:
        p = QPainter(self)
        try:
            p.setCompositionMode(QPainter.CompositionMode_Source)
            if self._mode is OverlayMode.PICK:
                p.fillRect(self.rect(), _PICK_DIM)
                p.setCompositionMode(QPainter.CompositionMode_SourceOver)
                p.setPen(QColor(255, 255, 255))
                p.drawText(self.rect().adjusted(0, 40, 0, 0), Qt.AlignHCenter | Qt.AlignTop, "点击选择位置，ESC 取消")
                return

            p.fillRect(self.rect(), _DIM)
            p.fillRect(self._crop, _NEAR_CLEAR)
            p.setCompositionMode(QPainter.CompositionMode_SourceOver)

            # 描边画在框内侧，截图时由 inset 去掉
            pen = QPen(_BORDER, 2)
            pen.setJoinStyle(Qt.MiterJoin)
            p.setPen(pen)
            p.drawRect(self._crop.adjusted(1, 1, -1, -1))
            p.fillRect(self._handle_rect(), _BORDER)
        finally:
            p.end()

    def _handle_rect(self) -> QRect:
        r = self._crop
        return QRect(r.right() - HANDLE + 1, r.bottom() - HANDLE + 1, HANDLE, HANDLE)

    # ---------- 鼠标 / 键盘 ----------

    def mousePressEvent(self, event: QMouseEvent) -> None:
        if self._mode is OverlayMode.PICK:
            if event.button() == Qt.LeftButton:
                gp = event.globalPosition()
                x, y = self._to_physical(gp.x(), gp.y())
                self._send("point-picked", {"x": x, "y": y})
            elif event.button() == Qt.RightButton:
                self._send("close-overlay")
            return

        if self._submitting or event.button() != Qt.LeftButton:
            return
        pos = event.position().toPoint()
        if self._handle_rect().contains(pos):
            self._drag = "resize"
        elif self._crop.contains(pos):
            self._drag = "move"
            self._drag_offset = pos - self._crop.topLeft()

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        if self._drag is None:
            return
        pos = event.position().toPoint()
        if self._drag == "move":
            self._crop.moveTopLeft(pos - self._drag_offset)
        else:
            self._crop.setWidth(max(MIN_CROP, pos.x() - self._crop.x()))
            self._crop.setHeight(max(MIN_CROP, pos.y() - self._crop.y()))
        self._layout_action_bar()
        self.update()

    def mouseReleaseEvent(self, _event: QMouseEvent) -> None:
        self._drag = None

    def mouseDoubleClickEvent(self, event: QMouseEvent) -> None:
        if self._mode is OverlayMode.CROP and self._crop.contains(event.position().toPoint()):
            self._confirm()

    def keyPressEvent(self, event: QKeyEvent) -> None:
        key = event.key()
        if key == Qt.Key_Escape:
            if self._mode is OverlayMode.PICK:
                self._send("close-overlay")
            else:
                self._cancel()
            return
        if key in (Qt.Key_Return, Qt.Key_Enter) and self._mode is OverlayMode.CROP:
            self._confirm()
            return
        super().keyPressEvent(event)

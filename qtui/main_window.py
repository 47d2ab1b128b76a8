# qtui/main_window.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from PySide6.QtCore import QTimer
from PySide6.QtGui import QCloseEvent, QFont, QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)

from core.app.service import CoreService
from core.models.geometry import Point, Rect
from core import status as st
from qtui.adapters import QtWindowHandle
from qtui.dispatcher import QtDispatcher
from qtui.status_bar import StatusController
from qtui.status_text import describe_status

log = logging.getLogger(__name__)


def _fmt_point(p: Optional[Point]) -> str:
    return "-" if p is None else f"({p.x}, {p.y})"


def _fmt_rect(r: Optional[Rect]) -> str:
    return "-" if r is None else f"{r.width}x{r.height} @ ({r.x}, {r.y})"


class MainWindow(QMainWindow):
    """
    控制面：
    - 开始：打开裁剪覆盖层
    - 批量：拾取左右位置、循环次数、两侧下移距离、开始 / 停止
    - 状态栏：订阅 core 的状态流，渲染 toast

    只通过 CoreService.invoke 发请求；窗口本身的显示 / 隐藏由 core 控制。
    """

    def __init__(self, *, service: CoreService, dispatcher: QtDispatcher, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("截图粘贴助手")

        self._service = service
        self._dispatcher = dispatcher

        self._left: Optional[Point] = None
        self._right: Optional[Point] = None
        self._zoom = 1.0
        self._base_font = QFont(self.font())

        self._setup_central_widget()
        self.status = StatusController(self)
        self._setup_shortcuts()

        self.handle = QtWindowHandle(self)
        service.attach_main_window(self.handle)
        self._unsub_status = service.status.subscribe(
            lambda s: self._dispatcher.call_soon(lambda: self._on_status(s))
        )

        self.resize(440, 380)
        # 事件循环跑起来之后再发第一个请求
        QTimer.singleShot(0, self._refresh_last_rect)

    # ---------- UI 基本结构 ----------

    def _setup_central_widget(self) -> None:
        central = QWidget(self)
        root = QVBoxLayout(central)
        root.setContentsMargins(12, 12, 12, 12)
        root.setSpacing(10)

        # 单次截图
        self._btn_start = QPushButton("开始", central)
        self._btn_start.setMinimumHeight(36)
        self._btn_start.clicked.connect(self._open_overlay)
        root.addWidget(self._btn_start)

        hint = QLabel("点击开始后，拖动/缩放裁剪框，点确定截图。", central)
        hint.setWordWrap(True)
        root.addWidget(hint)

        # 批量
        box = QGroupBox("批量粘贴", central)
        form = QFormLayout(box)

        self._spin_loop = QSpinBox(box)
        self._spin_loop.setRange(1, 9999)
        self._spin_loop.setValue(1)
        form.addRow("循环次数", self._spin_loop)

        self._lbl_left = QLabel(_fmt_point(None), box)
        self._btn_pick_left = QPushButton("拾取", box)
        self._btn_pick_left.clicked.connect(lambda: self._pick("left"))
        form.addRow("左源位置（粘贴）", self._row(self._lbl_left, self._btn_pick_left))

        self._lbl_right = QLabel(_fmt_point(None), box)
        self._btn_pick_right = QPushButton("拾取", box)
        self._btn_pick_right.clicked.connect(lambda: self._pick("right"))
        form.addRow("右源位置（截图）", self._row(self._lbl_right, self._btn_pick_right))

        self._spin_left_off = QSpinBox(box)
        self._spin_left_off.setRange(0, 10000)
        form.addRow("左侧下移距离", self._spin_left_off)

        self._spin_right_off = QSpinBox(box)
        self._spin_right_off.setRange(0, 10000)
        form.addRow("右侧下移距离", self._spin_right_off)

        self._btn_batch_start = QPushButton("开始批量", box)
        self._btn_batch_stop = QPushButton("停止", box)
        self._btn_batch_stop.setEnabled(False)
        self._btn_batch_start.clicked.connect(self._start_batch)
        self._btn_batch_stop.clicked.connect(self._stop_batch)
        form.addRow(self._row(self._btn_batch_start, self._btn_batch_stop))

        root.addWidget(box)
        root.addStretch(1)
        self.setCentralWidget(central)

    @staticmethod
    def _row(*widgets: QWidget) -> QWidget:
        w = QWidget()
        lay = QHBoxLayout(w)
        lay.setContentsMargins(0, 0, 0, 0)
        for x in widgets:
            lay.addWidget(x)
        return w

    def _setup_shortcuts(self) -> None:
        QShortcut(QKeySequence.ZoomIn, self, activated=lambda: self.set_zoom_factor(self._zoom + 0.1))
        QShortcut(QKeySequence.ZoomOut, self, activated=lambda: self.set_zoom_factor(self._zoom - 0.1))
        QShortcut(QKeySequence("Ctrl+0"), self, activated=lambda: self.set_zoom_factor(1.0))

    # ---------- 缩放 ----------

    def set_zoom_factor(self, factor: float) -> None:
        f = max(0.5, min(3.0, float(factor or 1.0)))
        if abs(f - self._zoom) < 1e-6:
            return
        self._zoom = f
        font = QFont(self._base_font)
        size = self._base_font.pointSizeF()
        if size > 0:
            font.setPointSizeF(size * f)
        central = self.centralWidget()
        if central is not None:
            central.setFont(font)

    # ---------- 动作 ----------

    def _invoke(self, name: str, payload: Any = None, *, on_done=None) -> None:
        self._dispatcher.spawn(self._service.invoke(name, payload), on_done=on_done, label=name)

    def _open_overlay(self) -> None:
        self._invoke("open-overlay")

    def _refresh_last_rect(self) -> None:
        self._invoke("get-last-rect", on_done=lambda r: self.status.set_rect_text(_fmt_rect(r)))

    def _pick(self, side: str) -> None:
        self._set_pick_enabled(False)
        self._dispatcher.spawn(self._pick_flow(side), label=f"pick {side}")

    async def _pick_flow(self, side: str) -> None:
        try:
            p = await self._service.invoke("pick-point")
        finally:
            self._set_pick_enabled(True)
        if p is None:
            return
        if side == "left":
            self._left = Point(p.x, p.y)
            self._lbl_left.setText(_fmt_point(self._left))
        else:
            self._right = Point(p.x, p.y)
            self._lbl_right.setText(_fmt_point(self._right))

    def _set_pick_enabled(self, on: bool) -> None:
        self._btn_pick_left.setEnabled(on)
        self._btn_pick_right.setEnabled(on)

    def batch_config(self) -> Dict[str, Any]:
        return {
            "loopCount": int(self._spin_loop.value()),
            "leftSourcePos": self._left.to_dict() if self._left else None,
            "rightSourcePos": self._right.to_dict() if self._right else None,
            "leftOffsetDistance": int(self._spin_left_off.value()),
            "rightOffsetDistance": int(self._spin_right_off.value()),
        }

    def _start_batch(self) -> None:
        self._invoke("start-batch", self.batch_config())

    def _stop_batch(self) -> None:
        self._invoke("stop-batch")

    # ---------- 状态 ----------

    def _on_status(self, status: str) -> None:
        view = describe_status(status)
        self.status.show_view(view)
        if view.batch_running is not None:
            self._btn_batch_start.setEnabled(not view.batch_running)
            self._btn_batch_stop.setEnabled(view.batch_running)
        if status == st.COPIED:
            self._refresh_last_rect()

    # ---------- 关闭 ----------

    def closeEvent(self, event: QCloseEvent) -> None:
        try:
            self._unsub_status()
        except Exception:
            log.exception("status unsubscribe failed")
        try:
            self._service.shutdown()
        except Exception:
            log.exception("service shutdown failed")
        super().closeEvent(event)

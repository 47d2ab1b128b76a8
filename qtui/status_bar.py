# qtui/status_bar.py
from __future__ import annotations

from typing import Optional

from PySide6.QtWidgets import QMainWindow, QStatusBar, QLabel
from PySide6.QtCore import QTimer

from qtui.status_text import StatusView

_LEVEL_COLORS = {
    "success": "#2e9d4f",
    "warning": "#c98a00",
    "error": "#d9534f",
}


class StatusController:
    """
    封装 QStatusBar：
    - 左侧：上次裁剪区域、批量状态
    - 右侧：当前状态 toast（支持 TTL 自动清空）
    """

    def __init__(self, main_window: QMainWindow) -> None:
        self._bar: QStatusBar = main_window.statusBar()

        self._lbl_rect = QLabel("选区: -")
        self._lbl_batch = QLabel("批量: 空闲")
        self._lbl_status = QLabel("")

        self._bar.addWidget(self._lbl_rect)
        self._bar.addWidget(self._lbl_batch)
        self._bar.addPermanentWidget(self._lbl_status, 1)

        self._timer = QTimer()
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._reset_status)

    def set_rect_text(self, text: str) -> None:
        self._lbl_rect.setText(f"选区: {text}")

    def set_batch_running(self, running: bool) -> None:
        self._lbl_batch.setText("批量: 运行中" if running else "批量: 空闲")

    def set_status(self, text: str, *, level: str = "", ttl_ms: Optional[int] = None) -> None:
        color = _LEVEL_COLORS.get(level)
        self._lbl_status.setStyleSheet(f"color: {color};" if color else "")
        self._lbl_status.setText(text)
        self._timer.stop()
        if ttl_ms is not None and ttl_ms > 0:
            self._timer.start(ttl_ms)

    def show_view(self, view: StatusView) -> None:
        self.set_status(view.text, level=view.level, ttl_ms=view.ttl_ms)
        if view.batch_running is not None:
            self.set_batch_running(view.batch_running)

    def error(self, msg: str, ttl_ms: int = 6000) -> None:
        s = (msg or "").strip()
        if not s:
            return
        self.set_status(s, level="error", ttl_ms=ttl_ms)

    def text(self) -> str:
        return self._lbl_status.text()

    def _reset_status(self) -> None:
        self._lbl_status.setStyleSheet("")
        self._lbl_status.setText("")

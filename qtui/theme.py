# qtui/theme.py
from __future__ import annotations

from PySide6.QtWidgets import QApplication
from PySide6.QtGui import QPalette, QColor


DARK_THEMES = ("dark", "darkly")


def _apply_dark_palette(app: QApplication) -> None:
    palette = QPalette()

    palette.setColor(QPalette.Window, QColor(53, 53, 53))
    palette.setColor(QPalette.WindowText, QColor(220, 220, 220))
    palette.setColor(QPalette.Base, QColor(42, 42, 42))
    palette.setColor(QPalette.AlternateBase, QColor(66, 66, 66))
    palette.setColor(QPalette.Text, QColor(220, 220, 220))
    palette.setColor(QPalette.Button, QColor(53, 53, 53))
    palette.setColor(QPalette.ButtonText, QColor(220, 220, 220))
    palette.setColor(QPalette.Highlight, QColor(42, 130, 218))
    palette.setColor(QPalette.HighlightedText, QColor(255, 255, 255))

    app.setPalette(palette)


def apply_theme(app: QApplication, theme_name: str) -> None:
    """
    settings.json 的 theme：dark / darkly 用暗色调色板，其余用 Fusion 默认亮色。
    """
    name = (theme_name or "").strip().lower()
    app.setStyle("Fusion")

    if name in DARK_THEMES:
        _apply_dark_palette(app)
    else:
        app.setPalette(app.style().standardPalette())

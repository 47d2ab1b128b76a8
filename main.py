# main.py
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from PySide6 import QtAsyncio
from PySide6.QtWidgets import QApplication

from core.app.service import CoreService
from core.capture.grabber import MssScreenGrabber
from core.input.synthetic import PynputInputDriver
from core.logging_setup import setup_logging
from core.models.settings import AppSettings
from core.repos.last_rect_repo import LastRectRepo
from core.repos.settings_repo import SettingsRepo
from qtui.adapters import QtClipboard, QtDisplayProvider
from qtui.dispatcher import QtDispatcher
from qtui.main_window import MainWindow
from qtui.overlay.handle import QtOverlayFactory
from qtui.theme import apply_theme

log = logging.getLogger(__name__)

DATA_DIR_ENV = "CROPPASTE_DATA_DIR"
DEFAULT_DATA_DIR = "app_data"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="croppaste", description="截图粘贴助手")
    p.add_argument("--data-dir", default=None, help=f"数据目录（默认 ${DATA_DIR_ENV} 或 ./{DEFAULT_DATA_DIR}）")
    p.add_argument("--console-log", action="store_true", help="同时把日志输出到 stderr")
    p.add_argument("--log-level", default=None, help="覆盖 settings.json 里的 log_level")
    return p.parse_args(argv)


def resolve_data_dir(arg: Optional[str], environ=os.environ) -> Path:
    raw = arg or environ.get(DATA_DIR_ENV) or DEFAULT_DATA_DIR
    return Path(raw).expanduser()


def build_service(*, settings: AppSettings, app_data_dir: Path, dispatcher: QtDispatcher) -> CoreService:
    display = QtDisplayProvider()
    return CoreService(
        display=display,
        overlay_factory=QtOverlayFactory(dispatcher=dispatcher, display=display),
        grabber=MssScreenGrabber(),
        clipboard=QtClipboard(),
        input_driver=PynputInputDriver(),
        last_rect=LastRectRepo(app_data_dir),
        timings=settings.timings,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    app_data_dir = resolve_data_dir(args.data_dir)

    # 配置（日志级别也在里面，所以先读配置再起日志）
    settings = SettingsRepo(app_data_dir).load_or_create()
    level = (args.log_level or settings.log_level or "INFO").upper()

    log_rt = setup_logging(app_data_dir=app_data_dir, level=level, console=bool(args.console_log))
    log.info("start data_dir=%s level=%s", app_data_dir.resolve(), level)

    try:
        app = QApplication.instance() or QApplication(sys.argv[:1])
        app.setApplicationName("croppaste")
        apply_theme(app, settings.theme)

        dispatcher = QtDispatcher()
        service = build_service(settings=settings, app_data_dir=app_data_dir, dispatcher=dispatcher)

        win = MainWindow(service=service, dispatcher=dispatcher)
        win.show()

        # Qt 事件循环同时充当 asyncio 事件循环；最后一个窗口关闭时返回
        QtAsyncio.run(keep_running=True, quit_qapp=True)
        return 0
    finally:
        log.info("exit")
        log_rt.stop()


if __name__ == "__main__":
    sys.exit(main())

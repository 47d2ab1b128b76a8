# core/repos/last_rect_repo.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from core.io.json_store import JsonStoreError, atomic_write_json, ensure_dir, read_json
from core.models.geometry import Rect

log = logging.getLogger(__name__)


class LastRectRepo:
    """
    Manages app_data/last-rect.json: the last confirmed crop rect (logical units).

    Policy:
    - 读失败 / 内容损坏 一律当作“没有上次选区”，返回 None，不抛异常。
    - 写失败只记日志，截图流程不能因为缓存文件写不进去而中断。
    """

    def __init__(self, app_data_dir: Path) -> None:
        self._app_data_dir = app_data_dir
        ensure_dir(self._app_data_dir)

    @property
    def path(self) -> Path:
        return self._app_data_dir / "last-rect.json"

    def load(self) -> Optional[Rect]:
        try:
            data = read_json(self.path, default={})
        except JsonStoreError as e:
            log.warning("last rect unreadable, treated as absent: %s", e)
            return None
        if not data:
            return None
        return Rect.from_dict(data)

    def save(self, rect: Rect) -> bool:
        try:
            atomic_write_json(self.path, rect.to_dict(), indent=None)
            return True
        except JsonStoreError:
            log.exception("failed to persist last rect")
            return False

# core/repos/settings_repo.py
from __future__ import annotations

import logging
from pathlib import Path

from core.io.json_store import JsonReadError, atomic_write_json, ensure_dir, read_json
from core.models.settings import AppSettings

log = logging.getLogger(__name__)


class SettingsRepo:
    """
    Manages app_data/settings.json (timings, log level, theme).
    首次运行写入默认值；文件损坏时回落到默认值但不覆盖原文件，方便手工修复。
    """

    def __init__(self, app_data_dir: Path) -> None:
        self._app_data_dir = app_data_dir
        ensure_dir(self._app_data_dir)

    @property
    def path(self) -> Path:
        return self._app_data_dir / "settings.json"

    def load_or_create(self) -> AppSettings:
        existed = self.path.exists()
        try:
            data = read_json(self.path, default={})
        except JsonReadError as e:
            log.warning("settings.json invalid, using defaults: %s", e)
            return AppSettings()

        settings = AppSettings.from_dict(data)
        if not existed:
            self.save(settings)
        return settings

    def save(self, settings: AppSettings) -> None:
        atomic_write_json(self.path, settings.to_dict())

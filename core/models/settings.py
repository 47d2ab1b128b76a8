# core/models/settings.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from core.models.common import as_dict, as_int, as_str, clamp_int


@dataclass
class Timings:
    """
    经验值延迟（毫秒）与重试次数。

    这些数值对应平台合成器 / 输入注入的实际延迟，不要为了“快”去掉。
    """
    # capture
    crop_inset: int = 2
    hide_settle_ms: int = 220
    crop_slack_px: int = 50
    clipboard_attempts: int = 20
    clipboard_backoff_step_ms: int = 60
    clipboard_backoff_cap_ms: int = 600

    # overlay / pick
    load_attempts: int = 3
    load_retry_delay_ms: int = 500
    pick_settle_ms: int = 500
    page_ready_timeout_ms: int = 3000
    pick_timeout_ms: int = 30000

    # batch
    click_settle_ms: int = 300
    key_hold_ms: int = 100
    paste_settle_ms: int = 1000

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Timings":
        d = as_dict(d)
        dflt = Timings()

        def ms(key: str, hi: int = 120_000) -> int:
            return clamp_int(as_int(d.get(key, getattr(dflt, key)), getattr(dflt, key)), 0, hi)

        def count(key: str) -> int:
            return clamp_int(as_int(d.get(key, getattr(dflt, key)), getattr(dflt, key)), 1, 100)

        return Timings(
            crop_inset=clamp_int(as_int(d.get("crop_inset", dflt.crop_inset), dflt.crop_inset), 0, 50),
            hide_settle_ms=ms("hide_settle_ms"),
            crop_slack_px=ms("crop_slack_px", 10_000),
            clipboard_attempts=count("clipboard_attempts"),
            clipboard_backoff_step_ms=ms("clipboard_backoff_step_ms"),
            clipboard_backoff_cap_ms=ms("clipboard_backoff_cap_ms"),
            load_attempts=count("load_attempts"),
            load_retry_delay_ms=ms("load_retry_delay_ms"),
            pick_settle_ms=ms("pick_settle_ms"),
            page_ready_timeout_ms=ms("page_ready_timeout_ms"),
            pick_timeout_ms=ms("pick_timeout_ms", 600_000),
            click_settle_ms=ms("click_settle_ms"),
            key_hold_ms=ms("key_hold_ms"),
            paste_settle_ms=ms("paste_settle_ms"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {k: int(v) for k, v in self.__dict__.items()}


@dataclass
class AppSettings:
    """
    Represents settings.json root object.
    """
    schema_version: int = 1
    log_level: str = "INFO"
    theme: str = "light"
    timings: Timings = field(default_factory=Timings)

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "AppSettings":
        d = as_dict(d)
        level = as_str(d.get("log_level", "INFO"), "INFO").strip().upper() or "INFO"
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            level = "INFO"
        return AppSettings(
            schema_version=as_int(d.get("schema_version", 1), 1),
            log_level=level,
            theme=as_str(d.get("theme", "light"), "light"),
            timings=Timings.from_dict(d.get("timings", {}) or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": int(self.schema_version),
            "log_level": self.log_level,
            "theme": self.theme,
            "timings": self.timings.to_dict(),
        }

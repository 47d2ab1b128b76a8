# tests/test_models.py
from __future__ import annotations

import pytest

from core.errors import InvalidInput
from core.models.batch import BatchConfig
from core.models.geometry import DisplayInfo, Point, Rect
from core.models.settings import AppSettings, Timings


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "x",
        {"x": 1, "y": 2, "width": 3},
        {"x": "1", "y": 2, "width": 3, "height": 4},
        {"x": True, "y": 2, "width": 3, "height": 4},
        {"x": float("nan"), "y": 2, "width": 3, "height": 4},
        {"x": float("inf"), "y": 2, "width": 3, "height": 4},
    ],
)
def test_rect_from_dict_rejects_malformed(raw) -> None:
    assert Rect.from_dict(raw) is None


def test_rect_from_dict_rounds_floats() -> None:
    r = Rect.from_dict({"x": -10.4, "y": 2.6, "width": 100, "height": 50})
    assert r == Rect(-10, 3, 100, 50)
    assert r.right == 90 and r.bottom == 53
    assert not r.is_empty
    assert Rect(0, 0, 0, 5).is_empty


def test_display_info_dict_uses_camel_case() -> None:
    d = DisplayInfo(id=2, bounds=Rect(0, 0, 100, 50), size=(100, 50), scale_factor=1.25).to_dict()
    assert d["scaleFactor"] == 1.25
    assert DisplayInfo.from_dict(d).bounds == Rect(0, 0, 100, 50)


def _cfg(**kw):
    base = {
        "loopCount": 3,
        "leftSourcePos": {"x": 1, "y": 2},
        "rightSourcePos": {"x": 3, "y": 4},
    }
    base.update(kw)
    return base


def test_batch_config_accepts_camel_case() -> None:
    cfg = BatchConfig.parse(_cfg(leftOffsetDistance=10, rightOffsetDistance=20))
    assert cfg.loop_count == 3
    assert cfg.left_source_pos == Point(1, 2)
    assert cfg.right_source_pos == Point(3, 4)
    assert (cfg.left_offset_distance, cfg.right_offset_distance) == (10, 20)


def test_batch_config_legacy_offset_fills_both_sides() -> None:
    cfg = BatchConfig.parse(_cfg(offsetDistance=50))
    assert (cfg.left_offset_distance, cfg.right_offset_distance) == (50, 50)

    cfg = BatchConfig.parse(_cfg(offsetDistance=50, rightOffsetDistance=5))
    assert (cfg.left_offset_distance, cfg.right_offset_distance) == (50, 5)


def test_batch_config_defaults_offsets_to_zero() -> None:
    cfg = BatchConfig.parse(_cfg())
    assert (cfg.left_offset_distance, cfg.right_offset_distance) == (0, 0)


@pytest.mark.parametrize(
    "raw,msg",
    [
        ("nope", "批量参数无效"),
        (_cfg(loopCount=0), "循环次数必须大于0"),
        (_cfg(loopCount=None), "循环次数必须大于0"),
        (_cfg(leftSourcePos=None), "请先设置左源位置"),
        (_cfg(rightSourcePos={"x": 1}), "请先设置右源位置"),
        (_cfg(leftOffsetDistance="a"), "下移距离必须是整数"),
        (_cfg(rightOffsetDistance=-1), "下移距离不能为负数"),
    ],
)
def test_batch_config_rejects(raw, msg: str) -> None:
    with pytest.raises(InvalidInput) as ei:
        BatchConfig.parse(raw)
    assert str(ei.value) == msg


def test_batch_config_instance_is_kept() -> None:
    cfg = BatchConfig(loop_count=2, left_source_pos=Point(1, 1), right_source_pos=Point(2, 2))
    assert BatchConfig.parse(cfg) is cfg


def test_timings_clamped_and_defaulted() -> None:
    t = Timings.from_dict({"clipboard_attempts": 0, "hide_settle_ms": -5, "pick_timeout_ms": "x"})
    assert t.clipboard_attempts == 1
    assert t.hide_settle_ms == 0
    assert t.pick_timeout_ms == 30000
    assert Timings.from_dict(Timings().to_dict()) == Timings()


def test_app_settings_unknown_level_falls_back() -> None:
    s = AppSettings.from_dict({"log_level": "verbose", "timings": None})
    assert s.log_level == "INFO"
    assert s.timings == Timings()

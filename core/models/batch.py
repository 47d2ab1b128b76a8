# core/models/batch.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from core.errors import InvalidInput
from core.models.common import strict_int
from core.models.geometry import Point


def _pick(d: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in d:
            return d[k]
    return None


@dataclass
class BatchConfig:
    """
    一次批量运行的参数。运行期间归 BatchRunner 独占，
    left/right 的 y 会被原地累加；运行结束即丢弃，不落盘。
    """
    loop_count: int = 1
    left_source_pos: Point = field(default_factory=Point)   # 粘贴目标
    right_source_pos: Point = field(default_factory=Point)  # 截图来源
    left_offset_distance: int = 0
    right_offset_distance: int = 0

    @staticmethod
    def parse(raw: Any) -> "BatchConfig":
        """
        校验并构造；任何缺失/越界都抛 InvalidInput（消息直接给用户看）。

        同时接受 snake_case 和请求边界上的 camelCase；
        旧版单一 offsetDistance 在两侧都缺省时同时作用于左右。
        """
        if isinstance(raw, BatchConfig):
            # 只校验，保留调用方的实例（运行时原地累加 y）
            BatchConfig.parse(raw.to_dict())
            return raw
        if not isinstance(raw, dict):
            raise InvalidInput("批量参数无效")

        loop_count = strict_int(_pick(raw, "loop_count", "loopCount"))
        if loop_count is None or loop_count <= 0:
            raise InvalidInput("循环次数必须大于0")

        left = Point.from_dict(_pick(raw, "left_source_pos", "leftSourcePos"))
        if left is None:
            raise InvalidInput("请先设置左源位置")
        right = Point.from_dict(_pick(raw, "right_source_pos", "rightSourcePos"))
        if right is None:
            raise InvalidInput("请先设置右源位置")

        legacy = _pick(raw, "offset_distance", "offsetDistance")
        left_off_raw = _pick(raw, "left_offset_distance", "leftOffsetDistance")
        right_off_raw = _pick(raw, "right_offset_distance", "rightOffsetDistance")
        if left_off_raw is None:
            left_off_raw = legacy
        if right_off_raw is None:
            right_off_raw = legacy

        left_off = 0 if left_off_raw is None else strict_int(left_off_raw)
        right_off = 0 if right_off_raw is None else strict_int(right_off_raw)
        if left_off is None or right_off is None:
            raise InvalidInput("下移距离必须是整数")
        if left_off < 0 or right_off < 0:
            raise InvalidInput("下移距离不能为负数")

        return BatchConfig(
            loop_count=loop_count,
            left_source_pos=left,
            right_source_pos=right,
            left_offset_distance=left_off,
            right_offset_distance=right_off,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "loop_count": int(self.loop_count),
            "left_source_pos": self.left_source_pos.to_dict(),
            "right_source_pos": self.right_source_pos.to_dict(),
            "left_offset_distance": int(self.left_offset_distance),
            "right_offset_distance": int(self.right_offset_distance),
        }

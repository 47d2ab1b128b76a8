from __future__ import annotations

import math
from typing import Any, Dict, Optional


def as_dict(v: Any) -> Dict[str, Any]:
    return v if isinstance(v, dict) else {}


def as_str(v: Any, default: str = "") -> str:
    if v is None:
        return default
    if isinstance(v, str):
        return v
    return str(v)


def as_int(v: Any, default: int = 0) -> int:
    try:
        if v is None:
            return default
        if isinstance(v, float):
            return int(round(v))
        return int(v)
    except Exception:
        return default


def as_float(v: Any, default: float = 0.0) -> float:
    try:
        if v is None:
            return default
        return float(v)
    except Exception:
        return default


def is_number(v: Any) -> bool:
    # bool 是 int 的子类，JSON 里的 true/false 不算坐标
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def strict_int(v: Any) -> Optional[int]:
    """
    边界输入用：只接受数字（四舍五入为 int），其他一律 None。
    """
    if not is_number(v):
        return None
    if not math.isfinite(v):
        return None
    return int(round(v))


def clamp_int(v: int, lo: int, hi: int) -> int:
    if v < lo:
        return lo
    if v > hi:
        return hi
    return v

# core/geometry.py
from __future__ import annotations

from typing import Optional

from core.models.geometry import Rect
from core.platform import DisplayProvider, WindowHandle

DEFAULT_INSET = 2


def inset_logical_rect(logical: Rect, display_bounds: Rect, inset: int = DEFAULT_INSET) -> Rect:
    """
    用户画的框（相对显示器、逻辑单位） -> 虚拟屏幕上的绝对逻辑坐标，
    四边各收 inset，去掉裁剪框自身的描边；宽高至少为 1。
    """
    inset = int(inset)
    x = display_bounds.x + logical.x + inset
    y = display_bounds.y + logical.y + inset
    w = max(1, logical.width - inset * 2)
    h = max(1, logical.height - inset * 2)
    return Rect(x=int(round(x)), y=int(round(y)), width=int(round(w)), height=int(round(h)))


def usable_reference(window: Optional[WindowHandle]) -> Optional[WindowHandle]:
    """
    换算用的参考窗口必须还活着且可见；否则退回按显示器换算。
    """
    if window is None:
        return None
    try:
        if window.is_destroyed() or not window.is_visible():
            return None
    except Exception:
        return None
    return window


def to_physical_crop_region(
    logical: Rect,
    display_bounds: Rect,
    display: DisplayProvider,
    *,
    inset: int = DEFAULT_INSET,
    window: Optional[WindowHandle] = None,
) -> Rect:
    abs_dip = inset_logical_rect(logical, display_bounds, inset)
    return display.dip_to_screen_rect(abs_dip, usable_reference(window))

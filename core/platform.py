# core/platform.py
"""
core 需要外部协作者提供的契约。

core 只依赖这些 Protocol；Qt / mss / pynput 的实现放在 qtui/ 和 core/capture、core/input，
测试里用内存 fake 替换，便于在没有显示服务器的环境下跑。
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, Protocol, Tuple

from core.capture.frame import CapturedImage, ClipboardSnapshot, RawFrame
from core.models.geometry import DisplayInfo, OverlayMode, Rect

# 覆盖层内容 -> core 的请求通道（与控制面共用同一组命名操作）
RequestFn = Callable[[str, Any], Awaitable[Any]]


class WindowHandle(Protocol):
    def is_destroyed(self) -> bool: ...
    def is_visible(self) -> bool: ...
    def is_minimized(self) -> bool: ...

    def show(self) -> None: ...
    def show_inactive(self) -> None: ...
    def hide(self) -> None: ...
    def focus(self) -> None: ...
    def restore(self) -> None: ...
    def minimize(self) -> None: ...
    def close(self) -> None: ...
    def set_zoom_factor(self, factor: float) -> None: ...


class OverlayHandle(WindowHandle, Protocol):
    @property
    def mode(self) -> OverlayMode: ...

    async def load(self) -> None:
        """加载覆盖层内容；失败抛异常（由调用方重试）。"""
        ...

    def set_always_on_top(self, on: bool) -> None: ...
    def raise_to_top(self) -> None: ...
    def reset_state(self) -> None: ...


class OverlayFactory(Protocol):
    def create(self, mode: OverlayMode, bounds: Rect, request: RequestFn) -> OverlayHandle:
        """
        创建无边框、透明、置顶、不显示的全屏窗口，覆盖 bounds。
        """
        ...


class DisplayProvider(Protocol):
    def primary_display(self) -> DisplayInfo: ...

    def dip_to_screen_rect(self, rect: Rect, window: Optional[WindowHandle] = None) -> Rect:
        """
        逻辑坐标 -> 物理像素。window 为 None 时按 rect 所在显示器换算。
        """
        ...


class ScreenGrabber(Protocol):
    async def grab(self, region: Rect) -> RawFrame: ...


class ClipboardBackend(Protocol):
    def write_image(self, image: CapturedImage) -> None: ...
    def read_image_size(self) -> Tuple[int, int]:
        """剪贴板当前图片尺寸；没有图片返回 (0, 0)。"""
        ...
    def available_formats(self) -> Tuple[str, ...]: ...
    def snapshot(self) -> ClipboardSnapshot: ...
    def restore_image(self, snapshot: ClipboardSnapshot) -> None: ...
    def write_text(self, text: str, html: str = "") -> None: ...
    def clear(self) -> None: ...


class InputDriver(Protocol):
    """
    合成鼠标/键盘输入。全局唯一资源：调用方保证严格串行。
    """
    def move_to(self, x: int, y: int) -> None: ...
    def left_click(self) -> None: ...
    def key_down(self, key: str) -> None: ...
    def key_up(self, key: str) -> None: ...

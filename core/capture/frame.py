# core/capture/frame.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Tuple

from PIL import Image

from core.errors import CaptureFailure
from core.models.geometry import Rect

log = logging.getLogger(__name__)

# 抓屏后端声明自己的通道顺序；mss 在所有平台都是 BGRA
SUPPORTED_ORDERS = ("BGRA", "RGBA", "BGRX", "RGBX")


@dataclass(frozen=True)
class RawFrame:
    """
    抓屏后端返回的原始像素。left/top 是这块像素在虚拟屏幕上的物理坐标，
    后端忽略区域参数、返回整屏时用来做软件裁剪。
    """
    data: bytes
    width: int
    height: int
    left: int = 0
    top: int = 0
    channel_order: str = "BGRA"


@dataclass(frozen=True)
class CapturedImage:
    """
    剪贴板用的图片：RGBA 像素 + 显示器缩放因子（粘贴时按物理尺寸渲染）。
    """
    image: Image.Image
    scale_factor: float = 1.0

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    @property
    def is_empty(self) -> bool:
        w, h = self.image.size
        return w <= 0 or h <= 0

    def rgba_bytes(self) -> bytes:
        return self.image.tobytes("raw", "RGBA")


@dataclass(frozen=True)
class ClipboardSnapshot:
    """
    写剪贴板之前的内容，用于全部重试失败后的恢复。
    image 是后端原生对象（Qt 下是 QImage），None 表示原来没有图片。
    """
    image: Any = None
    text: str = ""
    html: str = ""
    formats: Tuple[str, ...] = ()


def to_rgba(frame: RawFrame) -> Image.Image:
    """
    显式的通道顺序转换。不要依赖“原生图片构造函数刚好和抓屏后端同序”。
    """
    order = (frame.channel_order or "").upper()
    if order not in SUPPORTED_ORDERS:
        raise CaptureFailure(f"unsupported channel order: {frame.channel_order!r}")
    expected = int(frame.width) * int(frame.height) * 4
    if len(frame.data) < expected:
        raise CaptureFailure(
            f"frame buffer too small: {len(frame.data)} < {expected} ({frame.width}x{frame.height})"
        )
    if order.endswith("X"):
        rgb = Image.frombytes("RGB", (frame.width, frame.height), bytes(frame.data), "raw", order)
        return rgb.convert("RGBA")
    return Image.frombytes("RGBA", (frame.width, frame.height), bytes(frame.data), "raw", order)


def needs_software_crop(frame: RawFrame, region: Rect, slack_px: int) -> bool:
    return (
        abs(int(frame.width) - int(region.width)) > slack_px
        or abs(int(frame.height) - int(region.height)) > slack_px
    )


def frame_to_image(frame: RawFrame, region: Rect, *, scale_factor: float, slack_px: int = 50) -> CapturedImage:
    """
    RawFrame -> CapturedImage：

    - 尺寸与请求区域相差超过 slack_px（任一方向）视为后端返回了整屏，
      按 region 在 frame 内的相对位置做软件裁剪
    - 否则原样使用
    """
    if frame.width <= 0 or frame.height <= 0:
        return CapturedImage(image=Image.new("RGBA", (0, 0)), scale_factor=scale_factor)

    img = to_rgba(frame)

    if needs_software_crop(frame, region, slack_px):
        left = int(region.x) - int(frame.left)
        top = int(region.y) - int(frame.top)
        box = (
            max(0, left),
            max(0, top),
            min(frame.width, left + int(region.width)),
            min(frame.height, top + int(region.height)),
        )
        log.info(
            "size mismatch grabbed=%dx%d requested=%dx%d, software crop box=%s",
            frame.width, frame.height, region.width, region.height, box,
        )
        if box[2] <= box[0] or box[3] <= box[1]:
            img = Image.new("RGBA", (0, 0))
        else:
            img = img.crop(box)

    return CapturedImage(image=img, scale_factor=float(scale_factor or 1.0))

# tests/test_frame.py
from __future__ import annotations

import pytest
from PIL import Image

from core.capture.frame import RawFrame, frame_to_image, needs_software_crop, to_rgba
from core.errors import CaptureFailure
from core.models.geometry import Rect

RGBA = (10, 20, 30, 255)


@pytest.mark.parametrize(
    "order,pixel",
    [
        ("BGRA", bytes([30, 20, 10, 255])),
        ("RGBA", bytes([10, 20, 30, 255])),
        ("BGRX", bytes([30, 20, 10, 0])),
        ("RGBX", bytes([10, 20, 30, 0])),
    ],
)
def test_channel_order_is_explicit(order: str, pixel: bytes) -> None:
    frame = RawFrame(data=pixel * 4, width=2, height=2, channel_order=order)
    img = to_rgba(frame)
    assert img.mode == "RGBA"
    assert img.getpixel((1, 1)) == RGBA


def test_unsupported_order_rejected() -> None:
    with pytest.raises(CaptureFailure):
        to_rgba(RawFrame(data=b"\x00" * 4, width=1, height=1, channel_order="ARGB"))


def test_short_buffer_rejected() -> None:
    with pytest.raises(CaptureFailure):
        to_rgba(RawFrame(data=b"\x00" * 7, width=2, height=1))


def _full_screen_frame(w: int, h: int, *, left: int = 0, top: int = 0, mark=(60, 25)) -> RawFrame:
    img = Image.new("RGBA", (w, h), (0, 0, 0, 255))
    img.putpixel(mark, (255, 0, 0, 255))
    return RawFrame(data=img.tobytes("raw", "BGRA"), width=w, height=h, left=left, top=top)


def test_close_enough_frame_used_as_is() -> None:
    frame = RawFrame(data=bytes([1, 2, 3, 255]) * (120 * 80), width=120, height=80)
    assert not needs_software_crop(frame, Rect(0, 0, 100, 60), 50)
    out = frame_to_image(frame, Rect(0, 0, 100, 60), scale_factor=1.5)
    assert out.size == (120, 80)
    assert out.scale_factor == 1.5


def test_full_screen_frame_cropped_to_region() -> None:
    frame = _full_screen_frame(200, 100)
    region = Rect(60, 25, 30, 10)
    assert needs_software_crop(frame, region, 50)

    out = frame_to_image(frame, region, scale_factor=1.0)
    assert out.size == (30, 10)
    assert out.image.getpixel((0, 0)) == (255, 0, 0, 255)
    assert len(out.rgba_bytes()) == 30 * 10 * 4


def test_software_crop_is_relative_to_frame_origin() -> None:
    frame = _full_screen_frame(200, 100, left=1000, top=500)
    out = frame_to_image(frame, Rect(1060, 525, 20, 5), scale_factor=1.0)
    assert out.size == (20, 5)
    assert out.image.getpixel((0, 0)) == (255, 0, 0, 255)


def test_region_outside_frame_gives_empty_image() -> None:
    frame = _full_screen_frame(200, 100)
    out = frame_to_image(frame, Rect(5000, 5000, 10, 10), scale_factor=1.0)
    assert out.is_empty


def test_zero_size_frame_is_empty() -> None:
    out = frame_to_image(RawFrame(data=b"", width=0, height=0), Rect(0, 0, 10, 10), scale_factor=1.0)
    assert out.is_empty

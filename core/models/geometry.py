# core/models/geometry.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from core.models.common import as_dict, as_float, as_int, strict_int


@dataclass(frozen=True)
class Rect:
    """
    Rectangle in either logical (DIP) or physical pixel units; the unit is
    decided by whoever produced it. x/y may be negative on multi-monitor setups.
    """
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @staticmethod
    def from_dict(d: Any) -> Optional["Rect"]:
        """
        Shape check only: all four keys must be numbers. Returns None otherwise.
        """
        if not isinstance(d, dict):
            return None
        vals = [strict_int(d.get(k)) for k in ("x", "y", "width", "height")]
        if any(v is None for v in vals):
            return None
        x, y, w, h = vals
        return Rect(x=x, y=y, width=w, height=h)  # type: ignore[arg-type]

    def to_dict(self) -> Dict[str, Any]:
        return {"x": int(self.x), "y": int(self.y), "width": int(self.width), "height": int(self.height)}


@dataclass
class Point:
    """
    Physical screen pixel. Mutable: the batch loop moves y down in place.
    """
    x: int = 0
    y: int = 0

    @staticmethod
    def from_dict(d: Any) -> Optional["Point"]:
        if not isinstance(d, dict):
            return None
        x = strict_int(d.get("x"))
        y = strict_int(d.get("y"))
        if x is None or y is None:
            return None
        return Point(x=x, y=y)

    def to_dict(self) -> Dict[str, Any]:
        return {"x": int(self.x), "y": int(self.y)}


@dataclass(frozen=True)
class DisplayInfo:
    id: int
    bounds: Rect
    size: Tuple[int, int]
    scale_factor: float = 1.0

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "DisplayInfo":
        d = as_dict(d)
        b = Rect.from_dict(d.get("bounds")) or Rect(0, 0, 0, 0)
        sz = as_dict(d.get("size"))
        return DisplayInfo(
            id=as_int(d.get("id", 0), 0),
            bounds=b,
            size=(as_int(sz.get("width", b.width), b.width), as_int(sz.get("height", b.height), b.height)),
            scale_factor=as_float(d.get("scaleFactor", 1.0), 1.0) or 1.0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "bounds": self.bounds.to_dict(),
            "size": {"width": int(self.size[0]), "height": int(self.size[1])},
            "scaleFactor": float(self.scale_factor),
        }


class OverlayMode(str, Enum):
    CROP = "crop"
    PICK = "pick"

    def __str__(self) -> str:
        return self.value

# core/input/keys.py
from __future__ import annotations

import sys

PASTE_KEY = "v"


def paste_modifier(platform: str | None = None) -> str:
    """
    粘贴组合键的修饰键：macOS 为 cmd，其余为 ctrl。
    """
    p = platform if platform is not None else sys.platform
    return "cmd" if p == "darwin" else "ctrl"

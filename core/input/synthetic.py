# core/input/synthetic.py
from __future__ import annotations

import logging
from typing import Union

from pynput import keyboard, mouse

log = logging.getLogger(__name__)

KeyLike = Union[keyboard.Key, keyboard.KeyCode, str]

_SPECIAL = {
    "ctrl": keyboard.Key.ctrl,
    "cmd": keyboard.Key.cmd,
    "alt": keyboard.Key.alt,
    "shift": keyboard.Key.shift,
    "enter": keyboard.Key.enter,
    "esc": keyboard.Key.esc,
    "tab": keyboard.Key.tab,
}


def to_pynput_key(key: str) -> KeyLike:
    ks = (key or "").strip().lower()
    if not ks:
        raise ValueError("key: empty")
    if ks in _SPECIAL:
        return _SPECIAL[ks]
    if ks.startswith("f") and ks[1:].isdigit():
        try:
            return getattr(keyboard.Key, ks)
        except AttributeError as e:
            raise ValueError(f"key: unknown function key {key!r}") from e
    if len(ks) == 1:
        return keyboard.KeyCode.from_char(ks)
    raise ValueError(f"key: unsupported {key!r}")


class PynputInputDriver:
    """
    基于 pynput 的合成输入：

    - move_to / left_click：物理像素坐标
    - key_down / key_up："ctrl" / "cmd" / "v" / "f1".. 等名字
    - 调用方（批量循环）负责串行和每步之间的等待
    """

    def __init__(self) -> None:
        self._mouse = mouse.Controller()
        self._kbd = keyboard.Controller()

    def move_to(self, x: int, y: int) -> None:
        self._mouse.position = (int(x), int(y))

    def left_click(self) -> None:
        self._mouse.click(mouse.Button.left, 1)

    def key_down(self, key: str) -> None:
        self._kbd.press(to_pynput_key(key))

    def key_up(self, key: str) -> None:
        self._kbd.release(to_pynput_key(key))

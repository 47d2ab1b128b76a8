# core/errors.py
from __future__ import annotations


class MacroError(Exception):
    """
    所有核心错误的基类；str(e) 就是给用户看的（本地化）文本。
    """


class InvalidInput(MacroError):
    """边界输入不合法（rect / config / 未知操作名），不产生任何副作用。"""


class WindowUnavailable(MacroError):
    """目标窗口在操作过程中被销毁。"""


class LoadFailure(MacroError):
    """覆盖层内容在重试后仍然加载失败。"""

    def __init__(self, message: str, *, unreachable: bool = False, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.unreachable = unreachable
        self.cause = cause


class PickTimeout(MacroError):
    """取点在超时时间内没有等到点击。"""

    def __init__(self, message: str, *, timeout_ms: int = 0) -> None:
        super().__init__(message)
        self.timeout_ms = timeout_ms


class CaptureFailure(MacroError):
    pass


class EmptyImage(CaptureFailure):
    def __init__(self, message: str = "nativeImage_empty") -> None:
        super().__init__(message)


class ClipboardFailure(MacroError):
    """写入 + 回读校验在全部重试后仍未成功（原剪贴板已恢复）。"""

    def __init__(self, message: str = "clipboard_verify_failed", *, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class BatchFailure(MacroError):
    pass


class NoCropRegion(BatchFailure):
    def __init__(self, message: str = "请先设置裁剪区域") -> None:
        super().__init__(message)

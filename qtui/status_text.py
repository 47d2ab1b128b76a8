# qtui/status_text.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core import status as st


@dataclass(frozen=True)
class StatusView:
    """
    一条状态在控制面上的呈现。
    level: "" / "success" / "warning" / "error"
    ttl_ms: None 表示常驻，直到下一条状态覆盖
    batch_running: None 表示这条状态不改变批量按钮的启停
    """
    text: str
    level: str = ""
    ttl_ms: Optional[int] = None
    batch_running: Optional[bool] = None


TOAST_TTL_MS = 2000


def describe_status(status: str) -> StatusView:
    head, arg = st.split_status(status)

    if head == st.CAPTURING:
        return StatusView("处理中...")
    if head == st.COPIED:
        return StatusView("复制成功", "success", TOAST_TTL_MS)
    if head == st.COPY_FAILED:
        return StatusView("复制失败", "error", TOAST_TTL_MS)
    if head == st.CANCELLED:
        return StatusView("取消", "warning", TOAST_TTL_MS)

    if head == st.BATCH_PROGRESS:
        i, _, total = arg.partition(":")
        return StatusView(f"批量进行中 {i}/{total}", batch_running=True)
    if head == st.BATCH_COMPLETE:
        return StatusView("批量完成", "success", TOAST_TTL_MS, batch_running=False)
    if head == st.BATCH_STOPPED:
        return StatusView("批量已停止", "warning", TOAST_TTL_MS, batch_running=False)
    if head == st.BATCH_ERROR:
        return StatusView(f"批量出错：{arg}", "error", 6000, batch_running=False)

    if head == st.PICK_POINT_FAILED:
        return StatusView(f"取点失败：{arg}", "error", 6000)
    if head == st.OVERLAY_FAILED:
        return StatusView(f"打开裁剪框失败：{arg}", "error", 6000)

    return StatusView(status or "", "", TOAST_TTL_MS)

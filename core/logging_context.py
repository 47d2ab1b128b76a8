# core/logging_context.py
from __future__ import annotations

from contextvars import ContextVar
from contextlib import contextmanager
from uuid import uuid4

corr_id_var: ContextVar[str] = ContextVar("corr_id", default="-")
action_var: ContextVar[str] = ContextVar("action", default="-")

def new_corr_id() -> str:
    return uuid4().hex[:12]

@contextmanager
def log_context(*, corr_id: str | None = None, action: str | None = None):
    """
    在当前 asyncio Task 内设置日志上下文；Task 会复制 context，
    所以在 create_task 之前进入的上下文会跟随整个 pick/batch 流程。
    """
    tokens = []
    try:
        if corr_id is not None:
            tokens.append((corr_id_var, corr_id_var.set(corr_id)))
        if action is not None:
            tokens.append((action_var, action_var.set(action)))
        yield
    finally:
        for var, tok in reversed(tokens):
            var.reset(tok)

# tests/conftest.py
from __future__ import annotations

import sys
from pathlib import Path

# 项目根目录 = tests 上一层目录
TESTS = Path(__file__).resolve().parent
ROOT = TESTS.parent

# 项目根：`import core` / `import qtui`；tests 目录：`import fakes`
for p in (str(ROOT), str(TESTS)):
    if p not in sys.path:
        sys.path.insert(0, p)

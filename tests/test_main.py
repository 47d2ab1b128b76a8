# tests/test_main.py
from __future__ import annotations

from pathlib import Path

import pytest

pytest.importorskip("PySide6.QtWidgets")
pytest.importorskip("mss")
pytest.importorskip("pynput.keyboard")

import main  # noqa: E402


def test_data_dir_precedence() -> None:
    env = {main.DATA_DIR_ENV: "/tmp/from-env"}
    assert main.resolve_data_dir("/tmp/from-flag", env) == Path("/tmp/from-flag")
    assert main.resolve_data_dir(None, env) == Path("/tmp/from-env")
    assert main.resolve_data_dir(None, {}) == Path(main.DEFAULT_DATA_DIR)


def test_cli_flags() -> None:
    args = main.parse_args(["--data-dir", "d", "--console-log", "--log-level", "debug"])
    assert args.data_dir == "d"
    assert args.console_log is True
    assert args.log_level == "debug"

    args = main.parse_args([])
    assert args.data_dir is None and args.console_log is False and args.log_level is None

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4


# -----------------------------
# Exceptions
# -----------------------------

@dataclass
class JsonStoreError(Exception):
    path: Path
    message: str
    cause: Optional[BaseException] = None

    def __str__(self) -> str:
        base = f"{self.message} (path={self.path})"
        if self.cause is not None:
            return f"{base}; cause={type(self.cause).__name__}: {self.cause}"
        return base


class JsonReadError(JsonStoreError):
    pass


class JsonWriteError(JsonStoreError):
    pass


# -----------------------------
# Public helpers
# -----------------------------

def ensure_dir(dir_path: Path) -> None:
    """
    Ensure a directory exists (mkdir -p).
    """
    try:
        dir_path.mkdir(parents=True, exist_ok=True)
    except Exception as e:
        raise JsonWriteError(path=dir_path, message="Failed to create directory", cause=e) from e


def read_json(path: Path, *, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Read JSON as dict.

    - If file doesn't exist or is blank: return `default` (or {}).
    - If JSON is invalid or not a JSON object: raise JsonReadError.
    """
    if default is None:
        default = {}

    try:
        if not path.exists():
            return dict(default)

        raw = path.read_text(encoding="utf-8").strip()
        if raw == "":
            return dict(default)

        data = json.loads(raw)
        if not isinstance(data, dict):
            raise JsonReadError(path=path, message="JSON root must be an object/dict")
        return data

    except JsonStoreError:
        raise
    except Exception as e:
        raise JsonReadError(path=path, message="Failed to read/parse JSON", cause=e) from e


def atomic_write_json(
    path: Path,
    data: Dict[str, Any],
    *,
    indent: Optional[int] = 2,
    sort_keys: bool = True,
) -> None:
    """
    Atomically write JSON to `path` (temp file in the same directory, then os.replace).

    If the write fails the original file remains intact; the temp file is
    cleaned up on a best-effort basis.
    """
    if not isinstance(data, dict):
        raise JsonWriteError(path=path, message="atomic_write_json expects `data` to be a dict")

    parent = path.parent
    ensure_dir(parent)

    tmp_path = parent / f".{path.name}.{uuid4().hex}.tmp"

    try:
        payload = json.dumps(
            data,
            ensure_ascii=False,
            indent=indent,
            sort_keys=sort_keys,
        )

        with open(tmp_path, "wb") as f:
            f.write(payload.encode("utf-8"))
            f.flush()
            os.fsync(f.fileno())

        os.replace(tmp_path, path)  # atomic on same filesystem

    except JsonStoreError:
        raise
    except Exception as e:
        raise JsonWriteError(path=path, message="Failed to write JSON atomically", cause=e) from e
    finally:
        try:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)
        except Exception:
            pass

"""
Web Playback: Storage

JSON file I/O for the shell's settings.
Atomic writes (.tmp + rename), .bak last-known-good, 3x retry.
"""

import json
import os
import shutil
import time
from typing import Any

# ========== DATA PATH ==========

_user_data_dir: str | None = None


def init_data_dir(path: str):
    """Set the user data directory. Must be called once at app startup."""
    global _user_data_dir
    _user_data_dir = path
    os.makedirs(path, exist_ok=True)


def data_path(file: str) -> str:
    """Build file path in the user data directory."""
    if _user_data_dir is None:
        raise RuntimeError("storage.init_data_dir() must be called before data_path()")
    return os.path.join(_user_data_dir, file)


# ========== JSON I/O ==========


def read_json(p: str, fallback: Any = None) -> Any:
    """
    Read JSON file safely with fallback.
    On failure, attempts .bak restore (last-known-good backup).
    """
    bak_path = f"{p}.bak"
    try:
        with open(p, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        try:
            with open(bak_path, "r", encoding="utf-8") as f:
                bak = json.load(f)
        except (OSError, ValueError):
            return fallback
        try:
            write_json_sync(p, bak)
        except OSError as e:
            print(f"[settings] Could not restore {os.path.basename(p)} from .bak: {e}")
        return bak


def write_json_sync(p: str, obj: Any):
    """Atomic JSON write with retry; refreshes the .bak copy on success."""
    dir_name = os.path.dirname(p)
    if dir_name:
        os.makedirs(dir_name, exist_ok=True)

    json_str = json.dumps(obj, indent=2, ensure_ascii=False)
    base_name = os.path.basename(p)
    tmp = os.path.join(dir_name, f".{base_name}.{os.getpid()}.{int(time.time() * 1000)}.tmp")
    bak_path = f"{p}.bak"

    retries = 3
    while retries > 0:
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(json_str)
            os.replace(tmp, p)
            try:
                shutil.copy2(p, bak_path)
            except OSError:
                pass
            return
        except OSError as error:
            retries -= 1
            if retries == 0:
                raise error
            time.sleep(0.05)

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv


load_dotenv(override=False)


def _is_frozen() -> bool:
    return getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS")


def _project_root() -> Path:
    env = os.getenv("CLOUDDRIVE_ROOT")
    if env:
        return Path(env)
    # When frozen (PyInstaller onefile), resources are under sys._MEIPASS
    if _is_frozen():
        return Path(getattr(sys, "_MEIPASS"))  # type: ignore[arg-type]
    # In source layout, this file is under <root>/clouddrive/core
    return Path(__file__).resolve().parents[2]


def _app_dir_writable_base() -> Path:
    """Writable base for runtime files (logs, downloads).

    - Frozen: alongside the executable
    - Source: repository root, unless CLOUDDRIVE_ROOT is set
    """
    env = os.getenv("CLOUDDRIVE_ROOT")
    if env:
        return Path(env)
    if _is_frozen():
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[2]


def _config_dir() -> Path:
    return _project_root() / "clouddrive" / "config"


def _work_dir() -> Path:
    return _app_dir_writable_base() / "clouddrive" / "work"


def resolve_config_path(path: str | Path) -> Path:
    p = Path(path)
    if p.is_absolute():
        return p
    # Support paths with or without leading 'clouddrive/'
    parts = p.parts
    if parts and parts[0] == "clouddrive":
        return _project_root() / p
    return _config_dir() / p

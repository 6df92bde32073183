# src/antigravity_bridge/utils/paths.py
"""
Location of files the bridge writes.

Frozen (PyInstaller) builds write next to the executable; otherwise files go
under the current working directory unless a root is passed explicitly.
"""

import sys
from pathlib import Path
from typing import Optional, Union


def get_default_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent
    return Path.cwd()


def get_logs_dir(root: Optional[Union[Path, str]] = None) -> Path:
    """Return `<root>/logs`, creating it if needed."""
    base = Path(root) if root else get_default_root()
    logs_dir = base / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def get_transaction_logs_dir(root: Optional[Union[Path, str]] = None) -> Path:
    """Return `<root>/logs/antigravity_logs`, where per-request logs go."""
    logs_dir = get_logs_dir(root) / "antigravity_logs"
    logs_dir.mkdir(exist_ok=True)
    return logs_dir

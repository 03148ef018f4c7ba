"""
Runtime utility helpers.
"""

from __future__ import annotations

from pathlib import Path


# ===========================
# Path System
# ===========================

def get_data_path() -> Path:
    """Return the mcrelay runtime directory (~/.mcrelay)."""
    return Path.home() / ".mcrelay"


def ensure_dir(path: Path) -> Path:
    """Ensure directory exists."""
    path.mkdir(parents=True, exist_ok=True)
    return path


# ===========================
# String Utilities
# ===========================

def truncate(s: str, max_len: int = 120, suffix: str = "...") -> str:
    """Truncate a string with suffix."""
    if len(s) <= max_len:
        return s
    return s[: max_len - len(suffix)] + suffix

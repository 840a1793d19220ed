"""
Runtime helpers: where contexts live, the clock, and human-friendly ages.
"""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Mapping

from loguru import logger

DEBUG_ENV_VAR = "PROTONHAX_DEBUG"
RUNTIME_DIR_OVERRIDE_VAR = "PROTONHAX_RUNTIME_DIR"


def runtime_root(
    subdir: str = "protonhax",
    environ: Mapping[str, str] | None = None,
) -> Path:
    """
    Resolve the directory holding one subdirectory per running appid.

    Order: PROTONHAX_RUNTIME_DIR, then $XDG_RUNTIME_DIR/<subdir>,
    then /run/user/<uid>/<subdir>.
    """
    env = os.environ if environ is None else environ

    override = env.get(RUNTIME_DIR_OVERRIDE_VAR)
    if override:
        return Path(override)

    base = env.get("XDG_RUNTIME_DIR") or f"/run/user/{current_uid(env)}"
    return Path(base) / subdir


def current_uid(environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ

    uid = env.get("UID", "")
    if uid.isdigit():
        return uid

    uid = _uid_from_proc_status()
    if uid is not None:
        return uid

    logger.debug("[RUNTIME] UID not in environment or /proc, using os.getuid()")
    return str(os.getuid())


def _uid_from_proc_status(status_path: Path = Path("/proc/self/status")) -> str | None:
    try:
        content = status_path.read_text()
    except OSError:
        return None

    for line in content.splitlines():
        if line.startswith("Uid:"):
            parts = line.split()
            if len(parts) > 1 and parts[1].isdigit():
                return parts[1]
            return None
    return None


def debug_enabled(environ: Mapping[str, str] | None = None) -> bool:
    env = os.environ if environ is None else environ
    return DEBUG_ENV_VAR in env


def unix_now() -> int:
    return max(0, int(time.time()))


def format_duration_ago(started_at: int, now: int | None = None) -> str:
    """Render the time since `started_at` as e.g. '3m 12s ago' or '1d 4h ago'."""
    secs = max(0, (unix_now() if now is None else now) - started_at)

    days, secs = divmod(secs, 86_400)
    hours, secs = divmod(secs, 3_600)
    mins, secs = divmod(secs, 60)

    if days:
        return f"{days}d {hours}h ago" if hours else f"{days}d ago"
    if hours:
        return f"{hours}h {mins}m ago" if mins else f"{hours}h ago"
    if mins:
        return f"{mins}m {secs}s ago" if secs else f"{mins}m ago"
    return f"{secs}s ago"

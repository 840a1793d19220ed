"""
protonhax Context Store

One directory per running appid under the runtime root:

    <root>/<appid>/started_at   decimal Unix seconds
    <root>/<appid>/exe          proton executable path
    <root>/<appid>/pfx          wine prefix path
    <root>/<appid>/env          `declare -x NAME=VALUE` lines

Contexts are assembled in a hidden staging directory and renamed into place,
so a concurrent reader sees either nothing or all four files. Readers still
treat every file as optional: a context written by an older version, or
damaged by hand, degrades to "unknown" fields instead of failing.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Mapping

from loguru import logger
from pydantic import BaseModel

from protonhax.runtime import unix_now
from protonhax.shell import escape, unescape
from protonhax.steam import AppMeta, read_app_meta

STARTED_AT_FILE = "started_at"
EXE_FILE = "exe"
PFX_FILE = "pfx"
ENV_FILE = "env"

FIELDS = (EXE_FILE, PFX_FILE)

_DECLARE_PREFIX = "declare -x "


class RunningContext(BaseModel):
    appid: str
    path: Path
    started_at: int | None = None
    name: str | None = None
    install_path: str | None = None


# ---------------------------------------------------------------------------
# env file format
# ---------------------------------------------------------------------------

def _is_closed_quote(value: str) -> bool:
    """True if a double-quoted value ends with an unescaped closing quote."""
    if len(value) < 2 or not value.endswith('"'):
        return False
    backslashes = len(value[1:-1]) - len(value[1:-1].rstrip("\\"))
    return backslashes % 2 == 0


def render_env_content(environment: Mapping[str, str]) -> str:
    return "".join(
        f"{_DECLARE_PREFIX}{name}={escape(value)}\n"
        for name, value in environment.items()
    )


def parse_env_content(content: str) -> list[tuple[str, str]]:
    """
    Parse `declare -x NAME=VALUE` lines into decoded (name, value) pairs.

    Lines that don't match are skipped. A quoted value that spans lines
    (the value itself contained a newline) is joined back together.
    """
    lines = content.split("\n")
    pairs: list[tuple[str, str]] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        i += 1

        stripped = line.strip()
        if not stripped.startswith(_DECLARE_PREFIX):
            continue

        name, sep, value = stripped[len(_DECLARE_PREFIX):].partition("=")
        if not sep:
            continue
        name = name.strip()
        value = value.strip()

        if value.startswith('"') and not _is_closed_quote(value):
            parts = [line.split("=", 1)[1].lstrip()]
            while i < len(lines) and not _is_closed_quote("\n".join(parts)):
                parts.append(lines[i])
                i += 1
            value = "\n".join(parts)

        pairs.append((name, unescape(value)))
    return pairs


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class ContextStore:
    """Reads and writes running contexts under a single runtime root."""

    def __init__(self, root: Path, compat_data_var: str = "STEAM_COMPAT_DATA_PATH"):
        self.root = Path(root)
        self.compat_data_var = compat_data_var

    def path_for(self, appid: str) -> Path:
        if not appid or appid.startswith(".") or "/" in appid or "\0" in appid:
            raise ValueError(f"Invalid appid: {appid!r}")
        return self.root / appid

    def exists(self, appid: str) -> bool:
        try:
            return self.path_for(appid).is_dir()
        except ValueError:
            return False

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def create(
        self,
        appid: str,
        executable_path: str,
        prefix_path: str,
        environment: Mapping[str, str],
        now: int | None = None,
    ) -> Path:
        """Persist a context and return its directory."""
        target = self.path_for(appid)
        self.root.mkdir(parents=True, exist_ok=True)

        staging = Path(tempfile.mkdtemp(prefix=f".{appid}.", dir=self.root))
        try:
            started_at = unix_now() if now is None else now
            (staging / STARTED_AT_FILE).write_text(str(started_at))
            (staging / EXE_FILE).write_text(executable_path)
            (staging / PFX_FILE).write_text(prefix_path)
            (staging / ENV_FILE).write_text(render_env_content(environment), encoding="utf-8", newline="")

            if target.exists():
                logger.warning(f"[STORE] Replacing stale context for {appid}")
                shutil.rmtree(target, ignore_errors=True)
            os.rename(staging, target)
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        logger.debug(f"[STORE] Context created: {target}")
        return target

    def destroy(self, appid: str) -> None:
        """Best-effort removal. Never raises."""
        try:
            target = self.path_for(appid)
        except ValueError:
            return
        shutil.rmtree(target, ignore_errors=True)
        logger.debug(f"[STORE] Context removed: {target}")

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def list(self, include_meta: bool = False) -> list[RunningContext]:
        if not self.root.is_dir():
            return []

        contexts = []
        for entry in self.root.iterdir():
            if entry.name.startswith(".") or not entry.is_dir():
                continue

            ctx = RunningContext(
                appid=entry.name,
                path=entry,
                started_at=self.read_started_at(entry.name),
            )
            if include_meta:
                meta = self.app_meta(entry.name)
                ctx.name = meta.name
                ctx.install_path = meta.install_path
            contexts.append(ctx)

        contexts.sort(key=lambda c: c.appid)
        return contexts

    def get(self, appid: str, include_meta: bool = False) -> RunningContext:
        path = self.path_for(appid)
        ctx = RunningContext(appid=appid, path=path, started_at=self.read_started_at(appid))
        if include_meta:
            meta = self.app_meta(appid)
            ctx.name = meta.name
            ctx.install_path = meta.install_path
        return ctx

    def read_started_at(self, appid: str) -> int | None:
        try:
            raw = (self.path_for(appid) / STARTED_AT_FILE).read_text().strip()
            value = int(raw)
        except (OSError, ValueError):
            return None
        return value if value >= 0 else None

    def get_field(self, appid: str, field: str) -> str:
        """
        Read `exe` or `pfx`.

        Raises OSError when unreadable and UnicodeDecodeError when not UTF-8.
        """
        if field not in FIELDS:
            raise ValueError(f"Unknown context field: {field!r}")
        return (self.path_for(appid) / field).read_text(encoding="utf-8").strip()

    def read_env_content(self, appid: str) -> str:
        # newline="" keeps \r and \r\n inside values intact
        with open(self.path_for(appid) / ENV_FILE, encoding="utf-8", newline="") as f:
            return f.read()

    def load_environment(self, appid: str) -> list[tuple[str, str]]:
        """Decoded environment snapshot. Raises OSError or UnicodeDecodeError when unreadable."""
        return parse_env_content(self.read_env_content(appid))

    def env_var(self, appid: str, name: str) -> str | None:
        try:
            pairs = self.load_environment(appid)
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"[STORE] env of {appid} unreadable: {e}")
            return None
        return next((value for key, value in pairs if key == name), None)

    def app_meta(self, appid: str) -> AppMeta:
        return read_app_meta(self.env_var(appid, self.compat_data_var), appid)
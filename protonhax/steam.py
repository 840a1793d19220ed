"""
Steam library lookups.

A game's compat data lives at <library>/steamapps/compatdata/<appid>, so the
library's steamapps directory, and with it the app manifest, can be found
from STEAM_COMPAT_DATA_PATH alone.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from pydantic import BaseModel


class AppMeta(BaseModel):
    """Human-facing details of an app. Fields stay None when unknown."""
    name: str | None = None
    install_path: str | None = None


class ManifestInfo(BaseModel):
    name: str | None = None
    installdir: str | None = None


def steamapps_path_from_compat(compat_data: str) -> Path | None:
    path = Path(compat_data)
    # compatdata/<appid> -> compatdata -> steamapps
    if len(path.parts) < 3:
        return None
    return path.parent.parent


def manifest_path(steamapps: Path, appid: str) -> Path:
    return steamapps / f"appmanifest_{appid}.acf"


def _parse_acf_line(line: str) -> tuple[str, str] | None:
    tokens = [t.strip() for t in line.strip().split('"')]
    tokens = [t for t in tokens if t]
    if len(tokens) < 2:
        return None
    return tokens[0], tokens[1]


def parse_manifest_info(content: str) -> ManifestInfo:
    """Pull `name` and `installdir` out of an appmanifest_*.acf body."""
    info = ManifestInfo()
    for line in content.splitlines():
        pair = _parse_acf_line(line)
        if pair is None:
            continue

        key, value = pair
        if key == "name":
            info.name = value
        elif key == "installdir":
            info.installdir = value

        if info.name is not None and info.installdir is not None:
            break
    return info


def read_app_meta(compat_data: str | None, appid: str) -> AppMeta:
    """Resolve name and install path for `appid`; any missing piece gives an empty AppMeta."""
    if not compat_data:
        return AppMeta()

    steamapps = steamapps_path_from_compat(compat_data)
    if steamapps is None:
        return AppMeta()

    path = manifest_path(steamapps, appid)
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        logger.debug(f"[STEAM] No readable manifest at {path}")
        return AppMeta()

    info = parse_manifest_info(content)
    install_path = None
    if info.installdir is not None:
        install_path = str(steamapps / "common" / info.installdir)

    return AppMeta(name=info.name, install_path=install_path)

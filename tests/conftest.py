from __future__ import annotations

from pathlib import Path

import pytest

from protonhax.config_loader import Settings
from protonhax.store import ContextStore

MANIFEST_TEMPLATE = """"AppState"
{{
    "appid"      "{appid}"
    "Universe"   "1"
    "name"       "{name}"
    "StateFlags" "4"
    "installdir" "{installdir}"
}}
"""


@pytest.fixture
def store(tmp_path: Path) -> ContextStore:
    return ContextStore(tmp_path / "run" / "protonhax")


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def steamapps(tmp_path: Path) -> Path:
    path = tmp_path / "library" / "steamapps"
    (path / "compatdata").mkdir(parents=True)
    (path / "common").mkdir()
    return path


@pytest.fixture
def add_game(steamapps: Path):
    """Install a fake game into the Steam library; returns its compat data path."""

    def _add(appid: str, name: str, installdir: str | None = None) -> str:
        (steamapps / f"appmanifest_{appid}.acf").write_text(
            MANIFEST_TEMPLATE.format(appid=appid, name=name, installdir=installdir or name)
        )
        compat = steamapps / "compatdata" / appid
        (compat / "pfx").mkdir(parents=True)
        return str(compat)

    return _add


@pytest.fixture
def start_game(store: ContextStore, add_game, tmp_path: Path):
    """Create a running context for a fake game, as `init` would."""

    def _start(appid: str, name: str | None = None, started_at: int | None = 1_000) -> ContextStore:
        environment = {"HOME": "/home/player", "PATH": "/usr/bin:/bin"}
        prefix = str(tmp_path / "nowhere" / "pfx")
        if name is not None:
            compat = add_game(appid, name)
            environment["STEAM_COMPAT_DATA_PATH"] = compat
            prefix = f"{compat}/pfx"

        proton = tmp_path / "proton-dir" / "proton"
        proton.parent.mkdir(exist_ok=True)
        proton.touch()

        store.create(appid, str(proton), prefix, environment, now=started_at or 0)
        if started_at is None:
            (store.path_for(appid) / "started_at").unlink()
        return store

    return _start

"""
Configuration loader for protonhax.
Merges built-in defaults with the user's config.yaml.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError


class ConfigError(Exception):
    pass


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class RuntimeSettings(BaseModel):
    subdir: str = "protonhax"


class SteamSettings(BaseModel):
    appid_var: str = "SteamAppId"
    compat_data_var: str = "STEAM_COMPAT_DATA_PATH"


class ProtonSettings(BaseModel):
    executable_marker: str = "/proton"
    run_verb: str = "run"
    prefix_subdir: str = "pfx"
    console_path: str = "drive_c/windows/system32/cmd.exe"


class Settings(BaseModel):
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)
    steam: SteamSettings = Field(default_factory=SteamSettings)
    proton: ProtonSettings = Field(default_factory=ProtonSettings)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def user_config_path(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    base = env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "protonhax" / "config.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")
    return data


def load_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """
    Load settings by merging:
      1. Built-in defaults (protonhax/config.yaml)
      2. User overrides (config_path, or $XDG_CONFIG_HOME/protonhax/config.yaml)
    """
    base = _read_yaml(_DEFAULT_CONFIG_PATH)

    path = config_path or user_config_path(environ)
    if path.exists():
        base = _deep_merge(base, _read_yaml(path))

    try:
        return Settings(**base)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e

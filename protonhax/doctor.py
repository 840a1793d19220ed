"""
protonhax Doctor: read-only consistency checks

Walks the launcher environment, the runtime root and every active context,
collecting findings. Errors fail the run; warnings are advisory.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Mapping

from pydantic import BaseModel, Field

from protonhax.config_loader import Settings
from protonhax.runtime import format_duration_ago
from protonhax.store import ENV_FILE, EXE_FILE, PFX_FILE, ContextStore, RunningContext, parse_env_content

Level = Literal["ok", "info", "warn", "error"]


class Finding(BaseModel):
    section: str
    level: Level
    message: str
    appid: str | None = None


class DoctorReport(BaseModel):
    root: str
    findings: list[Finding] = Field(default_factory=list)
    contexts: list[RunningContext] = Field(default_factory=list)
    warnings: int = 0
    errors: int = 0

    @property
    def ok(self) -> bool:
        return self.errors == 0

    def add(self, section: str, level: Level, message: str, appid: str | None = None) -> None:
        self.findings.append(Finding(section=section, level=level, message=message, appid=appid))
        if level == "warn":
            self.warnings += 1
        elif level == "error":
            self.errors += 1


def run_diagnostics(
    store: ContextStore,
    settings: Settings,
    environ: Mapping[str, str] | None = None,
) -> DoctorReport:
    env = os.environ if environ is None else environ
    report = DoctorReport(root=str(store.root))

    _check_environment(report, settings, env)
    _check_runtime(report, store)

    report.contexts = store.list(include_meta=True)
    if not report.contexts:
        report.add("contexts", "warn", "no active contexts found")
    for ctx in report.contexts:
        inspect_context(report, store, ctx, settings.steam.compat_data_var)

    return report


def _check_environment(report: DoctorReport, settings: Settings, env: Mapping[str, str]) -> None:
    appid_var = settings.steam.appid_var
    if appid_var in env:
        report.add("environment", "ok", f"{appid_var}={env[appid_var]}")
    else:
        report.add("environment", "info", f"{appid_var} is not set (normal outside a Steam launch)")

    compat_var = settings.steam.compat_data_var
    compat = env.get(compat_var)
    if compat is None:
        report.add("environment", "info", f"{compat_var} is not set (normal outside a running game)")
    elif Path(compat).exists():
        report.add("environment", "ok", f"{compat_var}={compat}")
    else:
        report.add("environment", "warn", f"{compat_var} is set but the path does not exist: {compat}")


def _check_runtime(report: DoctorReport, store: ContextStore) -> None:
    if store.root.exists():
        report.add("runtime", "ok", f"runtime root: {store.root}")
    else:
        report.add("runtime", "warn", f"runtime root missing: {store.root} (no context was ever active)")


def inspect_context(report: DoctorReport, store: ContextStore, ctx: RunningContext, compat_var: str) -> None:
    """Check one context's files independently of each other."""
    appid = ctx.appid

    try:
        exe = store.get_field(appid, EXE_FILE)
    except (OSError, UnicodeDecodeError):
        report.add("contexts", "error", "exe file is missing or unreadable", appid)
    else:
        if Path(exe).exists():
            report.add("contexts", "ok", f"exe: {exe}", appid)
        else:
            report.add("contexts", "error", f"exe path does not exist: {exe}", appid)

    try:
        pfx = store.get_field(appid, PFX_FILE)
    except (OSError, UnicodeDecodeError):
        report.add("contexts", "warn", "pfx file is missing or unreadable", appid)
    else:
        if Path(pfx).exists():
            report.add("contexts", "ok", f"pfx: {pfx}", appid)
        else:
            report.add("contexts", "warn", f"pfx path does not exist: {pfx}", appid)

    try:
        content = store.read_env_content(appid)
    except (OSError, UnicodeDecodeError):
        report.add("contexts", "error", f"{ENV_FILE} file is missing or unreadable", appid)
    else:
        report.add("contexts", "ok", f"{ENV_FILE}: environment file read", appid)
        compat = next((v for k, v in parse_env_content(content) if k == compat_var), None)
        if compat is None:
            report.add("contexts", "warn", f"{ENV_FILE}: {compat_var} is missing", appid)
        elif Path(compat).exists():
            report.add("contexts", "ok", f"{ENV_FILE}.{compat_var}: {compat}", appid)
        else:
            report.add("contexts", "warn", f"{ENV_FILE}.{compat_var} points to a missing path: {compat}", appid)

    if ctx.started_at is None:
        report.add("contexts", "warn", "started_at is missing or corrupt", appid)
    else:
        report.add("contexts", "ok", f"started_at: {ctx.started_at} ({format_duration_ago(ctx.started_at)})", appid)

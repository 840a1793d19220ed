"""
protonhax CLI: the interface

Steam side:
  protonhax init %COMMAND%              (set as the game's launch option)

User side:
  protonhax ls [-l] [--json]            (running games)
  protonhax run <selector> <cmd...>     (run a Windows program with the game's proton)
  protonhax cmd <selector>              (cmd.exe inside the game's prefix)
  protonhax exec <selector> <cmd...>    (native program with the game's environment)
  protonhax doctor                      (consistency checks)

A selector is an appid, `latest`, or part of the game's name.
"""

from __future__ import annotations

import json
import sys
from typing import Callable, List, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape as markup_escape

from protonhax.config_loader import ConfigError, Settings, load_settings
from protonhax.doctor import DoctorReport, run_diagnostics
from protonhax.identity import __codename__, __tagline__, __version__
from protonhax.launcher import Launcher, UsageError, spawn
from protonhax.resolver import AmbiguousSelectorError, ResolutionError
from protonhax.runtime import debug_enabled, format_duration_ago, runtime_root
from protonhax.shell import ParseError
from protonhax.store import ContextStore

EXIT_USAGE = 1
EXIT_RESOLUTION = 2

app = typer.Typer(
    name="protonhax",
    help=f"{__codename__}: {__tagline__}.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)

# Everything after the first positional belongs to the wrapped command
_PASSTHROUGH = {
    "allow_extra_args": True,
    "ignore_unknown_options": True,
    "allow_interspersed_args": False,
}


def version_callback(value: bool):
    if value:
        console.print(f"{__codename__} v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging (or set PROTONHAX_DEBUG)."),
):
    _configure_logging(debug or debug_enabled())
    logger.debug(f"protonhax started with args: {sys.argv}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command(context_settings=_PASSTHROUGH)
def init(
    ctx: typer.Context,
    cmd: Optional[List[str]] = typer.Argument(None, help="The command Steam substitutes for %COMMAND%"),
):
    """Should only be called by Steam with "protonhax init %COMMAND%"."""
    _execute(ctx, lambda: _launcher().init(cmd or []))


@app.command("ls")
def ls(
    ctx: typer.Context,
    long: bool = typer.Option(False, "--long", "-l", help="Show name, install path and start time"),
    json_output: bool = typer.Option(False, "--json", help="Print machine-readable JSON"),
):
    """List all currently running games."""
    _execute(ctx, lambda: _list(long, json_output))


@app.command(context_settings=_PASSTHROUGH)
def run(
    ctx: typer.Context,
    selector: str = typer.Argument(..., help="appid, 'latest', or part of the game's name"),
    cmd: Optional[List[str]] = typer.Argument(None, help="The command to run with proton"),
):
    """Run <cmd> in the context of <selector> with proton."""
    _execute(ctx, lambda: _launcher().run(selector, cmd or []))


@app.command("cmd")
def cmd_(
    ctx: typer.Context,
    selector: str = typer.Argument(..., help="appid, 'latest', or part of the game's name"),
):
    """Run cmd.exe in the context of <selector>."""
    _execute(ctx, lambda: _launcher().console(selector))


@app.command("exec", context_settings=_PASSTHROUGH)
def exec_(
    ctx: typer.Context,
    selector: str = typer.Argument(..., help="appid, 'latest', or part of the game's name"),
    cmd: Optional[List[str]] = typer.Argument(None, help="The command to execute natively"),
):
    """Run <cmd> natively with the environment of <selector>."""
    _execute(ctx, lambda: _launcher().exec(selector, cmd or []))


@app.command()
def doctor(ctx: typer.Context):
    """Check the runtime directory and every running context."""
    _execute(ctx, _diagnose)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _settings() -> Settings:
    try:
        return load_settings()
    except ConfigError as e:
        err_console.print(f"[bold red]Error:[/] {markup_escape(str(e))}", soft_wrap=True)
        raise typer.Exit(EXIT_USAGE)


def _store(settings: Settings) -> ContextStore:
    return ContextStore(runtime_root(settings.runtime.subdir), settings.steam.compat_data_var)


def _launcher() -> Launcher:
    settings = _settings()
    return Launcher(_store(settings), settings, runner=spawn)


def _execute(ctx: typer.Context, action: Callable[[], int]) -> None:
    """Run an operation and turn its result or failure into the exit code."""
    try:
        code = action()
    except (UsageError, ParseError) as e:
        err_console.print(f"[bold red]Error:[/] {markup_escape(str(e))}", soft_wrap=True)
        typer.echo(ctx.get_help())
        raise typer.Exit(EXIT_USAGE)
    except AmbiguousSelectorError as e:
        _print_ambiguous(e)
        raise typer.Exit(EXIT_RESOLUTION)
    except ResolutionError as e:
        err_console.print(f"[bold red]Error:[/] {markup_escape(str(e))}", soft_wrap=True)
        raise typer.Exit(EXIT_RESOLUTION)
    except (ConfigError, OSError, ValueError) as e:
        err_console.print(f"[bold red]Error:[/] {markup_escape(str(e))}", soft_wrap=True)
        raise typer.Exit(EXIT_USAGE)

    raise typer.Exit(code)


def _list(long: bool, json_output: bool) -> int:
    contexts = _store(_settings()).list(include_meta=long or json_output)

    if json_output:
        data = [
            {
                "appid": c.appid,
                "name": c.name,
                "install_path": c.install_path,
                "started_at": c.started_at,
                "started_ago": format_duration_ago(c.started_at) if c.started_at is not None else None,
            }
            for c in contexts
        ]
        typer.echo(json.dumps(data, indent=2))
        return 0

    if not long:
        for c in contexts:
            console.print(f"[green]{markup_escape(c.appid)}[/]", highlight=False, soft_wrap=True)
        return 0

    for c in contexts:
        parts = [f"[green]{markup_escape(c.appid)}[/]"]
        if c.name is not None:
            parts.append(f"[yellow]{markup_escape(c.name)}[/]")
        if c.install_path is not None:
            parts.append(f"[dim]{markup_escape(c.install_path)}[/]")
        if c.started_at is not None:
            parts.append(f"[dim]started {format_duration_ago(c.started_at)}[/]")
        console.print("  ".join(parts), highlight=False, soft_wrap=True)
    return 0


def _diagnose() -> int:
    settings = _settings()
    report = run_diagnostics(_store(settings), settings)
    _print_report(report)
    return 0 if report.ok else 1


def _print_ambiguous(error: AmbiguousSelectorError) -> None:
    err_console.print(f"[bold red]Error:[/] {markup_escape(str(error))}")
    for c in error.candidates:
        name = markup_escape(c.name) if c.name else "[dim]<unnamed>[/]"
        err_console.print(f"  [green]{markup_escape(c.appid)}[/]  [yellow]{name}[/]", highlight=False, soft_wrap=True)
    err_console.print("Pick the appid from `protonhax ls -l`.")


_LEVEL_TAGS = {
    "ok": "[bold green]OK[/]",
    "info": "[bold cyan]INFO[/]",
    "warn": "[bold yellow]WARN[/]",
    "error": "[bold red]ERR[/]",
}


def _print_report(report: DoctorReport) -> None:
    console.print("[bold]protonhax doctor[/]")

    for section, title in (("environment", "Environment"), ("runtime", "Runtime"), ("contexts", "Contexts")):
        console.print(f"\n{title}:")
        current_appid = None
        for f in report.findings:
            if f.section != section:
                continue
            if f.appid is not None and f.appid != current_appid:
                current_appid = f.appid
                console.print(f"  [bold cyan]•[/] {_context_title(report, f.appid)}", highlight=False, soft_wrap=True)
            console.print(f"    {_LEVEL_TAGS[f.level]} {markup_escape(f.message)}", highlight=False, soft_wrap=True)

    console.print(
        f"\nSummary: [yellow]{report.warnings}[/] warning(s), [red]{report.errors}[/] error(s)",
        highlight=False,
    )


def _context_title(report: DoctorReport, appid: str) -> str:
    ctx = next((c for c in report.contexts if c.appid == appid), None)
    if ctx is not None and ctx.name:
        return f"{appid} ({markup_escape(ctx.name)})"
    return appid


def _configure_logging(debug: bool) -> None:
    logger.remove()
    if debug:
        logger.add(
            lambda msg: err_console.print(f"[dim]{markup_escape(str(msg))}[/]", highlight=False, end=""),
            level="DEBUG",
            format="{time:HH:mm:ss} | {level:<7} | {message}",
        )
    else:
        logger.add(
            lambda msg: err_console.print(f"[dim]{markup_escape(str(msg))}[/]", highlight=False, end=""),
            level="WARNING",
            format="{message}",
        )


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()

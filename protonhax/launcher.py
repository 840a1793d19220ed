"""
protonhax Launcher: the operations behind `init`, `run`, `cmd` and `exec`

Nothing here exits the process or touches os.environ. Environments are
explicit maps, child processes go through an injectable runner, and every
operation returns the exit status the CLI should finish with.
"""

from __future__ import annotations

import os
import subprocess
from typing import Callable, Mapping, Sequence

from loguru import logger

from protonhax.config_loader import Settings
from protonhax.resolver import resolve
from protonhax.shell import classify_command
from protonhax.store import EXE_FILE, PFX_FILE, ContextStore, RunningContext

ProcessRunner = Callable[[list[str], Mapping[str, str]], int]


class UsageError(Exception):
    """The command was invoked without what it needs to do anything."""


class MissingVariableError(UsageError):
    pass


def spawn(argv: list[str], env: Mapping[str, str]) -> int:
    """Run argv with exactly `env`, block until it exits, return its status."""
    logger.debug(f"[SPAWN] Executing command (argv): {argv}")
    result = subprocess.run(argv, env=dict(env))
    if result.returncode < 0:
        logger.debug(f"[SPAWN] Child killed by signal {-result.returncode}")
        return 1
    return result.returncode


class Launcher:
    def __init__(
        self,
        store: ContextStore,
        settings: Settings,
        environ: Mapping[str, str] | None = None,
        runner: ProcessRunner = spawn,
    ):
        self.store = store
        self.settings = settings
        self.environ = dict(os.environ if environ is None else environ)
        self.runner = runner

    # ------------------------------------------------------------------
    # Steam side
    # ------------------------------------------------------------------

    def init(self, tokens: Sequence[str], now: int | None = None) -> int:
        """
        Record the game's context, run the real command, then forget the context.

        `tokens` is whatever Steam substituted for %COMMAND%.
        """
        if not tokens:
            raise UsageError("init needs the command Steam passes as %COMMAND%")

        appid = self._require(self.settings.steam.appid_var)
        compat_data = self._require(self.settings.steam.compat_data_var)

        command = classify_command(list(tokens), self.settings.proton.executable_marker)
        prefix = f"{compat_data}/{self.settings.proton.prefix_subdir}"

        child_env = dict(self.environ)
        child_env.update(command.assignments)

        self.store.create(appid, command.executable, prefix, self.environ, now=now)
        logger.info(f"[INIT] {appid}: proton={command.executable} pfx={prefix}")
        try:
            return self.runner(command.argv, child_env)
        finally:
            self.store.destroy(appid)

    # ------------------------------------------------------------------
    # User side
    # ------------------------------------------------------------------

    def replay_environment(self, selector: str) -> tuple[RunningContext, dict[str, str]]:
        """Resolve `selector` and build the environment the game was started with."""
        ctx = resolve(self.store, selector)

        env = dict(self.environ)
        env[self.settings.steam.appid_var] = ctx.appid
        for name, value in self.store.load_environment(ctx.appid):
            env[name] = value

        logger.debug(f"[REPLAY] {ctx.appid}: {len(env)} variables")
        return ctx, env

    def run(self, selector: str, cmd: Sequence[str]) -> int:
        """Run `cmd` through the game's proton."""
        if not cmd:
            raise UsageError("run needs a command to execute")

        ctx, env = self.replay_environment(selector)
        exe = self.store.get_field(ctx.appid, EXE_FILE)
        return self.runner([exe, self.settings.proton.run_verb, *cmd], env)

    def console(self, selector: str) -> int:
        """Open the prefix's cmd.exe through the game's proton."""
        ctx, env = self.replay_environment(selector)
        exe = self.store.get_field(ctx.appid, EXE_FILE)
        pfx = self.store.get_field(ctx.appid, PFX_FILE)
        cmd_exe = f"{pfx}/{self.settings.proton.console_path}"
        return self.runner([exe, self.settings.proton.run_verb, cmd_exe], env)

    def exec(self, selector: str, cmd: Sequence[str]) -> int:
        """Run a native `cmd` with the game's environment."""
        if not cmd:
            raise UsageError("exec needs a command to execute")

        _, env = self.replay_environment(selector)
        return self.runner(list(cmd), env)

    def _require(self, name: str) -> str:
        value = self.environ.get(name)
        if value is None:
            raise MissingVariableError(f"{name} is not set. Call init only from a Steam launch option.")
        return value

"""
Selector resolution: `latest`, an appid, or a fragment of the game's name.
"""

from __future__ import annotations

from loguru import logger

from protonhax.store import ContextStore, RunningContext

LATEST = "latest"


class ResolutionError(Exception):
    """The selector did not identify exactly one running context."""


class NoneRunningError(ResolutionError):
    pass


class NotFoundError(ResolutionError):
    pass


class AmbiguousSelectorError(ResolutionError):
    def __init__(self, message: str, candidates: list[RunningContext]):
        super().__init__(message)
        self.candidates = candidates


def resolve(store: ContextStore, selector: str) -> RunningContext:
    """
    Map a selector to exactly one running context.

    An existing appid directory always wins over a name match.
    """
    if selector.lower() == LATEST:
        return resolve_latest(store)

    if store.exists(selector):
        logger.debug(f"[RESOLVE] Exact appid match: {selector}")
        return store.get(selector)

    return resolve_by_name(store, selector)


def resolve_latest(store: ContextStore) -> RunningContext:
    contexts = store.list()
    if not contexts:
        raise NoneRunningError("No active contexts. Launch a game through Steam first.")

    # list() is sorted by appid, so max() keeps the smallest appid on ties
    timed = [c for c in contexts if c.started_at is not None]
    if timed:
        latest = max(timed, key=lambda c: c.started_at)
        logger.debug(f"[RESOLVE] latest -> {latest.appid} (started_at={latest.started_at})")
        return latest

    if len(contexts) == 1:
        return contexts[0]

    raise AmbiguousSelectorError(
        "Cannot determine latest: no active context has a start time. "
        "Pass the appid explicitly (see `protonhax ls -l`).",
        contexts,
    )


def resolve_by_name(store: ContextStore, query: str) -> RunningContext:
    needle = query.lower()
    matches = [
        c for c in store.list(include_meta=True)
        if c.name is not None and needle in c.name.lower()
    ]

    if len(matches) == 1:
        logger.debug(f"[RESOLVE] Name match '{query}' -> {matches[0].appid}")
        return matches[0]

    if not matches:
        raise NotFoundError(f'No running app with appid "{query}" and no name matches.')

    raise AmbiguousSelectorError(f'Several running apps match "{query}":', matches)

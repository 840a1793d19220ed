import pytest

from protonhax.resolver import (
    AmbiguousSelectorError,
    NoneRunningError,
    NotFoundError,
    resolve,
)


def test_latest_picks_most_recent(start_game):
    start_game("10", started_at=10)
    store = start_game("20", started_at=20)

    assert resolve(store, "latest").appid == "20"
    assert resolve(store, "LATEST").appid == "20"


def test_latest_tie_prefers_smallest_appid(start_game):
    start_game("30", started_at=50)
    store = start_game("200", started_at=50)

    assert resolve(store, "latest").appid == "200"


def test_latest_ignores_contexts_without_start_time(start_game):
    start_game("10", started_at=None)
    store = start_game("20", started_at=5)

    assert resolve(store, "latest").appid == "20"


def test_latest_single_context_without_start_time(start_game):
    store = start_game("10", started_at=None)
    assert resolve(store, "latest").appid == "10"


def test_latest_ambiguous_without_start_times(start_game):
    start_game("10", started_at=None)
    store = start_game("20", started_at=None)

    with pytest.raises(AmbiguousSelectorError) as exc:
        resolve(store, "latest")
    assert [c.appid for c in exc.value.candidates] == ["10", "20"]


def test_latest_with_nothing_running(store):
    with pytest.raises(NoneRunningError):
        resolve(store, "latest")


def test_exact_appid_wins(start_game):
    start_game("10", name="Game 20 Remastered")
    store = start_game("20", name="Other")

    ctx = resolve(store, "20")
    assert ctx.appid == "20"
    assert ctx.path == store.root / "20"


def test_name_fragment_single_match(start_game):
    start_game("10", name="Helldivers 2")
    store = start_game("1217060", name="Gunfire Reborn")

    ctx = resolve(store, "gunfire")
    assert ctx.appid == "1217060"
    assert ctx.name == "Gunfire Reborn"


def test_name_fragment_ambiguous(start_game):
    start_game("10", name="Gunfire A")
    store = start_game("20", name="Gunfire B")

    with pytest.raises(AmbiguousSelectorError) as exc:
        resolve(store, "gunfire")
    assert [(c.appid, c.name) for c in exc.value.candidates] == [("10", "Gunfire A"), ("20", "Gunfire B")]


def test_name_fragment_no_match(start_game):
    store = start_game("10", name="Gunfire Reborn")

    with pytest.raises(NotFoundError):
        resolve(store, "helldivers")


def test_unnamed_contexts_never_match(start_game):
    store = start_game("10")

    with pytest.raises(NotFoundError):
        resolve(store, "anything")


def test_selector_with_path_separator_is_a_name(start_game):
    store = start_game("10", name="AC/DC Live")
    assert resolve(store, "ac/dc").appid == "10"

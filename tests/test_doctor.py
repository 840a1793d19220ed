from protonhax.doctor import run_diagnostics


def _messages(report, level):
    return [f.message for f in report.findings if f.level == level]


def test_empty_root(store, settings):
    report = run_diagnostics(store, settings, environ={})

    assert report.errors == 0
    assert report.warnings >= 1
    assert report.ok
    assert "no active contexts found" in _messages(report, "warn")
    assert any("runtime root missing" in m for m in _messages(report, "warn"))


def test_environment_checks(store, settings, tmp_path):
    report = run_diagnostics(
        store,
        settings,
        environ={"SteamAppId": "10", "STEAM_COMPAT_DATA_PATH": str(tmp_path / "gone")},
    )

    assert "SteamAppId=10" in _messages(report, "ok")
    assert any("path does not exist" in m for m in _messages(report, "warn"))


def test_healthy_context(start_game, settings):
    store = start_game("1217060", name="Gunfire Reborn", started_at=100)

    report = run_diagnostics(store, settings, environ={})

    context_findings = [f for f in report.findings if f.appid == "1217060"]
    assert {f.level for f in context_findings} == {"ok"}
    assert report.errors == 0
    assert report.contexts[0].name == "Gunfire Reborn"


def test_broken_context(start_game, settings):
    store = start_game("10", started_at=None)
    (store.path_for("10") / "exe").write_text("/does/not/exist/proton")
    (store.path_for("10") / "pfx").unlink()

    report = run_diagnostics(store, settings, environ={})
    by_level = {level: [f.message for f in report.findings if f.appid == "10" and f.level == level]
                for level in ("ok", "warn", "error")}

    assert by_level["error"] == ["exe path does not exist: /does/not/exist/proton"]
    assert "pfx file is missing or unreadable" in by_level["warn"]
    assert "env: STEAM_COMPAT_DATA_PATH is missing" in by_level["warn"]
    assert "started_at is missing or corrupt" in by_level["warn"]
    assert not report.ok


def test_unreadable_env_is_an_error(start_game, settings):
    store = start_game("10", name="Game")
    (store.path_for("10") / "env").unlink()

    report = run_diagnostics(store, settings, environ={})

    assert "env file is missing or unreadable" in _messages(report, "error")
    assert report.errors == 1


def test_non_utf8_env_is_an_error(start_game, settings):
    store = start_game("10", name="Game")
    (store.path_for("10") / "env").write_bytes(b"declare -x BAD=\xff\xfe\n")

    report = run_diagnostics(store, settings, environ={})

    assert report.contexts[0].name is None
    assert "env file is missing or unreadable" in _messages(report, "error")
    assert report.errors == 1


def test_non_utf8_exe_is_an_error(start_game, settings):
    store = start_game("10", name="Game")
    (store.path_for("10") / "exe").write_bytes(b"/opt/\xff/proton")

    report = run_diagnostics(store, settings, environ={})

    assert "exe file is missing or unreadable" in _messages(report, "error")
    assert report.errors == 1

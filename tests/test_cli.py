"""Tests for perch.cli: entrypoint, app resolution, routes and cache commands."""

import sys
import types
from pathlib import Path

import pytest

from perch.app import App
from perch.cli import main
from perch.cli._resolve import resolve_app
from perch.config import AppConfig


def hello() -> str:
    return "hi"


def ban(user: str) -> str:
    return f"banned {user}"


def _build_app(cache: Path | None = None) -> App:
    app = App(AppConfig(route_cache=str(cache) if cache else None))
    app.command("start", hello, name="start")
    with app.group(prefix="admin", name="admin.", middleware="throttle:5,1"):
        app.command("ban {user}", ban, name="ban")
    app.fallback(hello)
    return app


@pytest.fixture
def fake_app_module(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Register a fake module with a perch App on sys.modules."""
    cache = tmp_path / "routes.json"
    mod = types.ModuleType("_fake_perch_app")
    mod.app = _build_app(cache)  # type: ignore[attr-defined]
    mod.create_app = lambda: _build_app(cache)  # type: ignore[attr-defined]
    mod.not_an_app = "just a string"  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "_fake_perch_app", mod)
    return cache


class TestCLIHelp:
    def test_help_exits_zero(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])
        assert exc_info.value.code == 0

    @pytest.mark.parametrize("command", ["routes", "route-cache", "route-clear"])
    def test_subcommand_help_exits_zero(self, command: str) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([command, "--help"])
        assert exc_info.value.code == 0

    @pytest.mark.parametrize("command", ["routes", "route-cache", "route-clear"])
    def test_missing_app(self, command: str) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([command])
        assert exc_info.value.code == 2

    def test_no_command_exits_zero(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0
        assert "usage" in capsys.readouterr().out.lower()


@pytest.mark.usefixtures("fake_app_module")
class TestResolveApp:
    def test_explicit_attribute(self) -> None:
        assert isinstance(resolve_app("_fake_perch_app:app"), App)

    def test_default_attribute(self) -> None:
        """Omitting :attr defaults to 'app'."""
        assert isinstance(resolve_app("_fake_perch_app"), App)

    def test_factory(self) -> None:
        assert isinstance(resolve_app("_fake_perch_app:create_app"), App)

    def test_missing_module(self) -> None:
        with pytest.raises(ModuleNotFoundError):
            resolve_app("nonexistent_module_xyz:app")

    def test_wrong_type(self) -> None:
        with pytest.raises(TypeError, match=r"not a perch\.App instance"):
            resolve_app("_fake_perch_app:not_an_app")

    def test_cli_reports_bad_import(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["routes", "nonexistent_module_xyz:app"])
        assert exc_info.value.code == 1
        assert "Error:" in capsys.readouterr().err


class TestRoutesCommand:
    def test_lists_routes(self, fake_app_module: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["routes", "_fake_perch_app:app"])
        out = capsys.readouterr().out
        lines = out.splitlines()
        assert lines[0].split() == ["VERB", "PATTERN", "NAME", "HANDLER", "MIDDLEWARE"]
        assert "admin ban {user}" in out
        assert "admin.ban" in out
        assert "ThrottleRequests:5,1" in out
        assert "{payload?} [fallback]" in out

    def test_filter_by_name(self, fake_app_module: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["routes", "_fake_perch_app:create_app", "--name", "admin."])
        out = capsys.readouterr().out
        assert "admin.ban" in out
        assert "start" not in out.split("\n", 2)[2]

    def test_filter_by_verb(self, fake_app_module: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["routes", "_fake_perch_app:create_app", "--verb", "callback_query"])
        out = capsys.readouterr().out
        # Only the fallback answers every verb
        assert "[fallback]" in out
        assert "admin ban" not in out


class TestCacheCommands:
    def test_cache_then_clear(self, fake_app_module: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["route-cache", "_fake_perch_app:create_app"])
        assert fake_app_module.is_file()
        assert "Routes cached" in capsys.readouterr().out

        main(["routes", "_fake_perch_app:create_app", "--cache", str(fake_app_module)])
        assert "admin.ban" in capsys.readouterr().out

        main(["route-clear", "_fake_perch_app:create_app"])
        assert not fake_app_module.exists()
        assert "cleared" in capsys.readouterr().out

    def test_cache_to_explicit_output(self, fake_app_module: Path, tmp_path: Path) -> None:
        target = tmp_path / "other" / "cache.json"
        main(["route-cache", "_fake_perch_app:create_app", "--output", str(target)])
        assert target.is_file()

    def test_clear_missing_file(self, fake_app_module: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["route-clear", "_fake_perch_app:create_app"])
        assert "No route cache" in capsys.readouterr().out

    def test_uncacheable_routes(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        app = App(AppConfig(route_cache=str(tmp_path / "c.json")))
        app.text("x", lambda: "x")
        mod = types.ModuleType("_fake_lambda_app")
        mod.app = app  # type: ignore[attr-defined]
        monkeypatch.setitem(sys.modules, "_fake_lambda_app", mod)

        with pytest.raises(SystemExit) as exc_info:
            main(["route-cache", "_fake_lambda_app:app"])
        assert exc_info.value.code == 1

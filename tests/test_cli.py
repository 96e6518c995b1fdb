"""Tests for stackgen.cli -- argument parsing and command flow."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from stackgen.cli import (
    build_config,
    cmd_new,
    cmd_serve,
    create_parser,
    main,
    prepare_database,
    report_dependencies,
)
from stackgen.config import Config, DatabaseConfig
from stackgen.database import DatabaseError, DatabaseResult
from stackgen.scaffolder import ScaffoldError
from stackgen.validators import DependencyReport, ToolStatus


def _args(argv: list[str]):
    return create_parser().parse_args(argv)


def _config(argv: list[str]) -> Config:
    with patch.dict(os.environ, {}, clear=True):
        return build_config(_args(argv))


# ---------------------------------------------------------------------------
# Parser / config
# ---------------------------------------------------------------------------


class TestParser:
    @pytest.mark.unit
    def test_new_defaults(self):
        args = _args(["new"])
        assert args.command == "new"
        assert args.output == "."
        assert not args.no_start
        assert not args.skip_checks
        assert args.startup_delay is None

    @pytest.mark.unit
    def test_serve_flags(self):
        args = _args(
            ["serve", "./shop", "--startup-delay", "1.5", "--wait-for-backend", "--ready-timeout", "90"]
        )
        assert args.project == "./shop"
        assert args.startup_delay == 1.5
        assert args.wait_for_backend
        assert args.ready_timeout == 90

    @pytest.mark.unit
    def test_command_required(self):
        with pytest.raises(SystemExit):
            _args([])


class TestBuildConfig:
    @pytest.mark.unit
    def test_flags_override_defaults(self, tmp_path: Path):
        config = _config(
            ["new", "--output", str(tmp_path), "--startup-delay", "0", "--wait-for-backend"]
        )
        assert config.output_dir == tmp_path.resolve()
        assert config.devserver.startup_delay == 0
        assert config.devserver.wait_for_backend is True
        assert config.devserver.ready_timeout is None

    @pytest.mark.unit
    def test_defaults_kept_without_flags(self):
        config = _config(["serve", "."])
        assert config.devserver.startup_delay == 3.0
        assert config.devserver.wait_for_backend is False

    @pytest.mark.unit
    def test_barrier_can_be_disabled(self):
        config = _config(["serve", ".", "--no-wait-for-backend"])
        assert config.devserver.wait_for_backend is False


# ---------------------------------------------------------------------------
# Interactive steps
# ---------------------------------------------------------------------------


class TestReportDependencies:
    @pytest.mark.unit
    def test_all_present(self):
        ok = dict(installed=True, valid=True)
        report = DependencyReport(
            **{name: ToolStatus(name=name, **ok) for name in ("node", "php", "composer", "mysql", "angular_cli")}
        )
        assert report_dependencies(report) is True

    @pytest.mark.unit
    def test_missing_tools_listed(self):
        report = DependencyReport(
            **{name: ToolStatus(name=name) for name in ("node", "php", "composer", "mysql", "angular_cli")}
        )
        with patch("stackgen.cli.console") as mock_console:
            assert report_dependencies(report) is False
        printed = " ".join(str(c.args[0]) for c in mock_console.print.call_args_list)
        assert "Angular CLI" in printed


class TestPrepareDatabase:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unreachable_server_raises(self, sample_config):
        with patch(
            "stackgen.cli.check_connection",
            AsyncMock(return_value=DatabaseResult(success=False, error="Connection refused")),
        ):
            with pytest.raises(DatabaseError, match="Connection refused"):
                await prepare_database(sample_config)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_creates_when_requested(self, sample_config):
        create = AsyncMock(return_value=DatabaseResult(success=True, exists=True))
        with patch(
            "stackgen.cli.check_connection", AsyncMock(return_value=DatabaseResult(success=True))
        ), patch("stackgen.cli.create_database", create):
            await prepare_database(sample_config)

        create.assert_awaited_once_with(sample_config.database)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_creation_skipped_when_disabled(self, sample_config):
        sample_config.database.create_if_missing = False
        create = AsyncMock()
        exists = AsyncMock(return_value=DatabaseResult(success=True, exists=True))
        with patch(
            "stackgen.cli.check_connection", AsyncMock(return_value=DatabaseResult(success=True))
        ), patch("stackgen.cli.create_database", create), patch(
            "stackgen.cli.database_exists", exists
        ):
            await prepare_database(sample_config)

        create.assert_not_called()
        exists.assert_awaited_once_with(sample_config.database)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_database_warns_when_creation_disabled(self, sample_config):
        sample_config.database.create_if_missing = False
        with patch(
            "stackgen.cli.check_connection", AsyncMock(return_value=DatabaseResult(success=True))
        ), patch(
            "stackgen.cli.database_exists",
            AsyncMock(return_value=DatabaseResult(success=True, exists=False)),
        ), patch("stackgen.cli.print_warning") as mock_warning:
            await prepare_database(sample_config)

        assert "shop_db does not exist" in mock_warning.call_args.args[0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reports_existing_database(self, sample_config):
        with patch(
            "stackgen.cli.check_connection", AsyncMock(return_value=DatabaseResult(success=True))
        ), patch(
            "stackgen.cli.create_database",
            AsyncMock(return_value=DatabaseResult(success=True, existed=True, exists=True)),
        ), patch("stackgen.cli.print_success") as mock_success:
            await prepare_database(sample_config)

        assert "already exists" in mock_success.call_args.args[0]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _fill_settings(config: Config) -> Config:
    config.project_name = "shop"
    config.database = DatabaseConfig(name="shop_db")
    return config


class TestCmdNew:
    @pytest.mark.unit
    def test_missing_tools_abort(self, tmp_path: Path):
        args = _args(["new", "--output", str(tmp_path)])
        config = _config(["new", "--output", str(tmp_path)])
        with patch("stackgen.cli.check_dependencies", AsyncMock(return_value=MagicMock())), patch(
            "stackgen.cli.report_dependencies", return_value=False
        ), patch("stackgen.cli.ask_project_settings") as mock_ask:
            assert cmd_new(args, config) == 1
        mock_ask.assert_not_called()

    @pytest.mark.unit
    def test_generates_and_starts_servers(self, tmp_path: Path):
        argv = ["new", "--output", str(tmp_path), "--skip-checks"]
        args, config = _args(argv), _config(argv)
        generator = MagicMock()
        generator.generate = AsyncMock(return_value=tmp_path / "shop")
        generator.tree_lines.return_value = ["shop/"]
        start = AsyncMock(return_value=0)

        with patch("stackgen.cli.ask_project_settings", side_effect=_fill_settings), patch(
            "stackgen.cli.prepare_database", AsyncMock()
        ), patch("stackgen.cli.ProjectGenerator", return_value=generator), patch(
            "stackgen.cli.Confirm.ask", return_value=True
        ), patch("stackgen.cli.start_servers", start):
            assert cmd_new(args, config) == 0

        start.assert_awaited_once_with(
            config.devserver,
            config.backend_path,
            config.frontend_path,
            "shop_db",
        )

    @pytest.mark.unit
    def test_no_start_prints_manual_steps(self, tmp_path: Path):
        argv = ["new", "--output", str(tmp_path), "--skip-checks", "--no-start"]
        args, config = _args(argv), _config(argv)
        generator = MagicMock()
        generator.generate = AsyncMock()
        generator.tree_lines.return_value = []
        start = AsyncMock()

        with patch("stackgen.cli.ask_project_settings", side_effect=_fill_settings), patch(
            "stackgen.cli.prepare_database", AsyncMock()
        ), patch("stackgen.cli.ProjectGenerator", return_value=generator), patch(
            "stackgen.cli.start_servers", start
        ), patch("stackgen.cli.print_manual_start") as mock_manual:
            assert cmd_new(args, config) == 0

        start.assert_not_called()
        mock_manual.assert_called_once_with(config)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "error", [DatabaseError("Could not connect"), ScaffoldError("ng new", "failed")]
    )
    def test_failures_exit_with_one(self, tmp_path: Path, error):
        argv = ["new", "--output", str(tmp_path), "--skip-checks"]
        args, config = _args(argv), _config(argv)

        with patch("stackgen.cli.ask_project_settings", side_effect=_fill_settings), patch(
            "stackgen.cli.prepare_database", AsyncMock(side_effect=error)
        ), patch("stackgen.cli.start_servers", AsyncMock()) as start:
            assert cmd_new(args, config) == 1

        start.assert_not_called()


class TestCmdServe:
    @pytest.mark.unit
    def test_missing_directories(self, tmp_path: Path):
        argv = ["serve", str(tmp_path / "shop")]
        start = AsyncMock()
        with patch("stackgen.cli.start_servers", start):
            assert cmd_serve(_args(argv), _config(argv)) == 1
        start.assert_not_called()

    @pytest.mark.unit
    def test_starts_servers_for_project(self, tmp_project_dir: Path):
        argv = ["serve", str(tmp_project_dir), "--startup-delay", "1"]
        start = AsyncMock(return_value=0)
        with patch("stackgen.cli.start_servers", start):
            assert cmd_serve(_args(argv), _config(argv)) == 0

        devserver, backend, frontend, db_name = start.await_args.args
        assert devserver.startup_delay == 1
        assert backend == tmp_project_dir.resolve() / "shop-backend"
        assert frontend == tmp_project_dir.resolve() / "shop-frontend"
        assert db_name == "shop_db"

    @pytest.mark.unit
    def test_uses_saved_database_name(self, tmp_project_dir: Path):
        saved = Config(project_name="shop", output_dir=tmp_project_dir.parent)
        saved.database.name = "legacy_shop"
        saved.save()
        argv = ["serve", str(tmp_project_dir)]
        start = AsyncMock(return_value=0)

        with patch("stackgen.cli.start_servers", start):
            cmd_serve(_args(argv), _config(argv))

        assert start.await_args.args[3] == "legacy_shop"

    @pytest.mark.unit
    def test_saved_session_settings_reach_servers(self, tmp_project_dir: Path):
        saved = Config(project_name="shop", output_dir=tmp_project_dir.parent)
        saved.devserver.backend.ready_marker = "Server running on"
        saved.devserver.frontend.port = 4300
        saved.devserver.startup_delay = 7.0
        saved.save()
        argv = ["serve", str(tmp_project_dir)]
        start = AsyncMock(return_value=0)

        with patch.dict(os.environ, {}, clear=True), patch("stackgen.cli.start_servers", start):
            cmd_serve(_args(argv), _config(argv))

        devserver = start.await_args.args[0]
        assert devserver.backend.ready_marker == "Server running on"
        assert devserver.frontend.port == 4300
        assert devserver.startup_delay == 7.0
        assert devserver.wait_for_backend is False

    @pytest.mark.unit
    def test_flags_and_env_override_saved_settings(self, tmp_project_dir: Path):
        saved = Config(project_name="shop", output_dir=tmp_project_dir.parent)
        saved.devserver.backend.ready_marker = "Server running on"
        saved.devserver.startup_delay = 7.0
        saved.save()
        argv = ["serve", str(tmp_project_dir), "--startup-delay", "2", "--wait-for-backend"]
        start = AsyncMock(return_value=0)

        env = {"STACKGEN_FRONTEND_READY_MARKER": "Local:"}
        with patch.dict(os.environ, env, clear=True), patch("stackgen.cli.start_servers", start):
            cmd_serve(_args(argv), build_config(_args(argv)))

        devserver = start.await_args.args[0]
        assert devserver.backend.ready_marker == "Server running on"
        assert devserver.frontend.ready_marker == "Local:"
        assert devserver.startup_delay == 2
        assert devserver.wait_for_backend is True

    @pytest.mark.unit
    def test_db_name_flag_wins(self, tmp_project_dir: Path):
        argv = ["serve", str(tmp_project_dir), "--db-name", "other_db"]
        start = AsyncMock(return_value=0)
        with patch("stackgen.cli.start_servers", start):
            cmd_serve(_args(argv), _config(argv))

        assert start.await_args.args[3] == "other_db"


class TestMain:
    @pytest.mark.unit
    def test_exit_code_propagates(self, tmp_project_dir: Path):
        with patch("stackgen.cli.cmd_serve", return_value=1) as mock_serve:
            with pytest.raises(SystemExit) as exc_info:
                main(["serve", str(tmp_project_dir)])

        assert exc_info.value.code == 1
        mock_serve.assert_called_once()

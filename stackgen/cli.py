"""stackgen command-line interface.

Two commands:

``new``   -- check the toolchain, ask for the project settings, prepare the
             database, generate both service trees, and optionally start the
             development servers.
``serve`` -- start the development servers of an already generated project.

Usage::

    python -m stackgen new
    python -m stackgen new --output ~/code --no-start
    python -m stackgen serve ./my-app --startup-delay 5
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from rich.prompt import Confirm, Prompt

from stackgen.config import Config, DevServerConfig
from stackgen.database import DatabaseError, check_connection, create_database, database_exists
from stackgen.devserver import start_servers
from stackgen.scaffolder import ProjectGenerator, ScaffoldError
from stackgen.utils import (
    console,
    print_banner,
    print_error,
    print_step,
    print_success,
    print_summary_table,
    print_warning,
)
from stackgen.validators import DependencyReport, check_dependencies, validate_project_name


# ---------------------------------------------------------------------------
# Interactive steps
# ---------------------------------------------------------------------------


def report_dependencies(report: DependencyReport) -> bool:
    """Print the toolchain status.  Returns ``True`` when everything is present."""
    if report.all_installed:
        print_success("✓ All required tools are installed")
        return True
    print_error("✗ Required tools are missing:")
    for hint in report.missing():
        console.print(f"[red]  - {hint}[/red]")
    print_warning("Please install the missing tools and try again.")
    return False


def ask_project_settings(config: Config) -> Config:
    """Fill *config* from interactive prompts."""
    while True:
        name = Prompt.ask("What is your project's name?", default="my-project", console=console)
        validation = validate_project_name(name)
        if validation.valid:
            break
        print_error(validation.message)
    config.project_name = name

    db = config.database
    db.name = Prompt.ask("Database name?", default=db.name or config.default_db_name, console=console)
    db.user = Prompt.ask("Database user?", default=db.user, console=console)
    db.password = Prompt.ask(
        "Database password?", password=True, default=db.password, show_default=False, console=console
    )
    db.host = Prompt.ask("Database host?", default=db.host, console=console)
    db.create_if_missing = Confirm.ask(
        "Create the database automatically if it does not exist?", default=True, console=console
    )
    return config


async def prepare_database(config: Config) -> None:
    """Verify the server is reachable, then create or look up the database.

    Raises:
        DatabaseError: If the server cannot be reached.
    """
    print_step("🔌 Checking the database connection...")
    result = await check_connection(config.database)
    if not result.success:
        raise DatabaseError(f"Could not connect to the database: {result.error}")
    print_success("✓ Database connection succeeded")

    db = config.database
    if db.create_if_missing:
        created = await create_database(db)
        if not created.success:
            print_warning(f"The database {db.name} could not be created ({created.error})")
        elif created.existed:
            print_success(f"✓ Database {db.name} already exists")
        else:
            print_success(f"✓ Database {db.name} created")
        return

    found = await database_exists(db)
    if found.exists:
        print_success(f"✓ Database {db.name} found")
    elif found.success:
        print_warning(f"The database {db.name} does not exist; create it before running migrations")
    else:
        print_warning(f"Could not check the database {db.name} ({found.error})")


def print_manual_start(config: Config) -> None:
    name = config.project_name
    backend = config.devserver.backend
    frontend = config.devserver.frontend
    print_step("📖 To start the servers manually:")
    console.print(f"   Backend:  cd {name}-backend && {backend.command_line}")
    console.print(f"   Frontend: cd {name}-frontend && {frontend.command} serve")
    console.print()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_new(args: argparse.Namespace, config: Config) -> int:
    print_banner()

    if not args.skip_checks:
        print_step("🔍 Checking system dependencies...")
        report = asyncio.run(check_dependencies())
        if not report_dependencies(report):
            return 1

    print_step("📝 Project configuration")
    ask_project_settings(config)

    try:
        asyncio.run(prepare_database(config))
        print_step("🚀 Creating project structure...")
        generator = ProjectGenerator(config)
        asyncio.run(generator.generate())
    except (DatabaseError, ScaffoldError) as exc:
        print_error(f"❌ {exc}")
        return 1

    print_step("🎉 Project created successfully!")
    console.print("[green]📂 Project structure:[/green]")
    for line in generator.tree_lines():
        console.print(f"   {line}")

    start = False if args.no_start else Confirm.ask(
        "Start the development servers now?", default=True, console=console
    )
    if not start:
        print_manual_start(config)
        return 0

    return asyncio.run(
        start_servers(
            config.devserver, config.backend_path, config.frontend_path, config.database.name
        )
    )


def cmd_serve(args: argparse.Namespace, config: Config) -> int:
    project_path = Path(args.project).resolve()
    saved = project_path / "stackgen.json"
    if saved.exists():
        # Saved session settings, then environment, then command-line flags.
        stored = Config.load(saved)
        stored.devserver.apply_env()
        apply_devserver_args(stored.devserver, args)
        config = stored
    config.output_dir = project_path.parent
    config.project_name = project_path.name
    if args.db_name:
        config.database.name = args.db_name

    for path in (config.backend_path, config.frontend_path):
        if not path.is_dir():
            print_error(f"❌ Directory not found: {path}")
            return 1

    print_summary_table(
        {
            "Backend": str(config.backend_path),
            "Frontend": str(config.frontend_path),
            "Database": config.database.name or config.default_db_name,
        },
        title=config.project_name,
    )
    return asyncio.run(
        start_servers(
            config.devserver,
            config.backend_path,
            config.frontend_path,
            config.database.name or config.default_db_name,
        )
    )


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _add_devserver_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--startup-delay",
        type=float,
        default=None,
        help="Seconds between starting the backend and the frontend (default: 3)",
    )
    parser.add_argument(
        "--wait-for-backend",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Start the frontend only once the backend reported readiness (default: off)",
    )
    parser.add_argument(
        "--ready-timeout",
        type=float,
        default=None,
        help="Stop everything if the servers are not ready within this many seconds",
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stackgen",
        description="Generate Laravel + Angular full-stack projects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  stackgen new\n"
            "  stackgen new --output ~/code --no-start\n"
            "  stackgen serve ./my-app --wait-for-backend\n"
        ),
    )
    sub = parser.add_subparsers(dest="command", required=True)

    new = sub.add_parser("new", help="create a new project")
    new.add_argument("--output", "-o", default=".", help="Parent directory (default: .)")
    new.add_argument("--no-start", action="store_true", help="Do not offer to start the servers")
    new.add_argument("--skip-checks", action="store_true", help="Skip the toolchain checks")
    _add_devserver_args(new)

    serve = sub.add_parser("serve", help="start the servers of an existing project")
    serve.add_argument("project", help="Project directory (holding <name>-backend and <name>-frontend)")
    serve.add_argument("--db-name", default=None, help="Database name shown in the status report")
    _add_devserver_args(serve)
    return parser


def apply_devserver_args(devserver: DevServerConfig, args: argparse.Namespace) -> DevServerConfig:
    """Overlay the session flags the user actually passed."""
    if args.startup_delay is not None:
        devserver.startup_delay = args.startup_delay
    if args.wait_for_backend is not None:
        devserver.wait_for_backend = args.wait_for_backend
    if args.ready_timeout is not None:
        devserver.ready_timeout = args.ready_timeout
    return devserver


def build_config(args: argparse.Namespace) -> Config:
    config = Config.from_env()
    if getattr(args, "output", None):
        config.output_dir = Path(args.output).resolve()
    apply_devserver_args(config.devserver, args)
    return config


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point for ``stackgen`` / ``python -m stackgen``."""
    parser = create_parser()
    args = parser.parse_args(argv)
    config = build_config(args)

    if args.command == "new":
        code = cmd_new(args, config)
    else:
        code = cmd_serve(args, config)
    sys.exit(code)


if __name__ == "__main__":
    main()

"""Laravel backend generator.

Creates the backend tree with ``composer create-project``, points ``.env`` at
the project's MySQL database, and overlays the CORS config, API routes and a
database health controller from the ``laravel/`` templates.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Optional

from ..config import Config
from ..utils import console, print_success, print_warning, run_command
from .base import ScaffoldError, build_context
from .templates import TemplateRenderer

CREATE_PROJECT_TIMEOUT = 1800


def update_env(content: str, values: dict[str, str]) -> str:
    """Set ``KEY=value`` lines in a dotenv document.

    Existing keys, including commented-out ones such as ``# DB_HOST=...``
    in recent Laravel skeletons, are replaced in place; missing keys are
    appended.
    """
    for key, value in values.items():
        pattern = re.compile(rf"^[ \t]*#?[ \t]*{re.escape(key)}=.*$", re.MULTILINE)
        line = f"{key}={value}"
        if pattern.search(content):
            content = pattern.sub(lambda _m: line, content, count=1)
        else:
            if content and not content.endswith("\n"):
                content += "\n"
            content += line + "\n"
    return content


class LaravelGenerator:
    """Generates and configures the Laravel backend."""

    def __init__(self, config: Config, renderer: Optional[TemplateRenderer] = None) -> None:
        self.config = config
        self.renderer = renderer or TemplateRenderer()

    async def generate(self, backend_path: str | Path | None = None) -> Path:
        """Create the backend project.

        Args:
            backend_path: Target directory.  Defaults to ``config.backend_path``.

        Returns:
            The backend directory.

        Raises:
            ScaffoldError: If ``composer create-project`` fails.
        """
        path = Path(backend_path) if backend_path else self.config.backend_path
        context = build_context(self.config)

        console.print("[cyan]Creating Laravel project...[/cyan]")
        rc, _, stderr = await run_command(
            ["composer", "create-project", "laravel/laravel", str(path), "--prefer-dist"],
            capture=False,
            timeout=CREATE_PROJECT_TIMEOUT,
        )
        if rc != 0:
            raise ScaffoldError(
                "composer create-project", stderr or f"exited with code {rc}"
            )

        console.print("[cyan]Configuring Laravel...[/cyan]")
        await self.configure_env(path, context)
        await self.renderer.render_tree("laravel", path, context)

        rc, _, stderr = await run_command(["php", "artisan", "key:generate"], cwd=path)
        if rc != 0:
            print_warning(f"Warning: could not generate the application key ({stderr})")

        console.print("[cyan]Running migrations...[/cyan]")
        rc, _, _ = await run_command(["php", "artisan", "migrate", "--force"], cwd=path)
        if rc != 0:
            print_warning("Warning: migrations could not be run")

        print_success("✓ Laravel backend configured")
        return path

    async def configure_env(self, path: Path, context: dict[str, Any]) -> Path:
        """Write ``.env`` with the MySQL settings, starting from whatever exists."""
        env_path = path / ".env"
        example_path = path / ".env.example"
        if env_path.exists():
            content = env_path.read_text(encoding="utf-8")
        elif example_path.exists():
            content = example_path.read_text(encoding="utf-8")
        else:
            content = ""

        content = update_env(
            content,
            {
                "DB_CONNECTION": "mysql",
                "DB_HOST": context["db_host"],
                "DB_PORT": str(context["db_port"]),
                "DB_DATABASE": context["db_name"],
                "DB_USERNAME": context["db_user"],
                "DB_PASSWORD": self.config.database.password,
            },
        )
        if "SANCTUM_STATEFUL_DOMAINS" not in content:
            content = update_env(content, {"SANCTUM_STATEFUL_DOMAINS": context["frontend_host"]})

        env_path.write_text(content, encoding="utf-8")
        return env_path

"""Angular frontend generator.

Creates the frontend tree with ``ng new`` and overlays the environments, the
API service, a welcome page that reports backend/database status, and the
standalone app bootstrap files from the ``angular/`` templates.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

from ..config import Config
from ..utils import console, print_success, run_command
from .base import ScaffoldError, build_context
from .templates import TemplateRenderer

NG_NEW_TIMEOUT = 1800


class AngularGenerator:
    """Generates and configures the Angular frontend."""

    def __init__(self, config: Config, renderer: Optional[TemplateRenderer] = None) -> None:
        self.config = config
        self.renderer = renderer or TemplateRenderer()

    async def generate(self, frontend_path: str | Path | None = None) -> Path:
        """Create the frontend project.

        Raises:
            ScaffoldError: If ``ng new`` fails.
        """
        path = Path(frontend_path) if frontend_path else self.config.frontend_path
        context = build_context(self.config)
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)

        console.print("[cyan]Creating Angular project...[/cyan]")
        rc, _, stderr = await run_command(
            [
                "ng",
                "new",
                path.name,
                f"--directory={path}",
                "--routing=true",
                "--style=css",
                "--skip-git=true",
                "--defaults",
            ],
            cwd=path.parent,
            capture=False,
            timeout=NG_NEW_TIMEOUT,
        )
        if rc != 0:
            raise ScaffoldError("ng new", stderr or f"exited with code {rc}")

        console.print("[cyan]Configuring Angular...[/cyan]")
        await self.renderer.render_tree("angular", path, context)

        print_success("✓ Angular frontend configured")
        return path

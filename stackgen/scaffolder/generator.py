"""Main scaffolding orchestrator.

Builds the project folder holding ``<name>-backend`` (Laravel) and
``<name>-frontend`` (Angular) and records the configuration next to them so
``stackgen serve`` can start the servers later.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from ..config import Config
from .angular import AngularGenerator
from .laravel import LaravelGenerator
from .templates import TemplateRenderer


class ProjectGenerator:
    """Runs both service generators in order.

    The backend is generated first; a failure there stops the run before the
    (slow) ``ng new`` is attempted.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self.renderer = TemplateRenderer()
        self.laravel = LaravelGenerator(config, self.renderer)
        self.angular = AngularGenerator(config, self.renderer)

    async def generate(self) -> Path:
        """Generate the complete project structure.

        Returns:
            Path to the generated project root.
        """
        project_root = self.config.project_path
        await asyncio.to_thread(project_root.mkdir, parents=True, exist_ok=True)

        await self.laravel.generate(self.config.backend_path)
        await self.angular.generate(self.config.frontend_path)

        self.config.save()
        return project_root

    def tree_lines(self) -> list[str]:
        """Short project-tree description for the final summary."""
        name = self.config.project_name
        return [
            f"{self.config.project_path}/",
            f"├── {name}-backend/ (Laravel)",
            f"└── {name}-frontend/ (Angular)",
        ]

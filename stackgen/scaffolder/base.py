"""Shared pieces of the Laravel and Angular generators."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from ..config import Config


class ScaffoldError(Exception):
    """Raised when a generation step fails irrecoverably."""

    def __init__(self, step: str, message: str) -> None:
        self.step = step
        super().__init__(f"{step}: {message}")


def build_context(config: Config) -> dict[str, Any]:
    """Template variables shared by both service trees."""
    backend = config.devserver.backend
    frontend = config.devserver.frontend
    return {
        "project_name": config.project_name,
        "db_name": config.database.name or config.default_db_name,
        "db_host": config.database.host,
        "db_port": config.database.port,
        "db_user": config.database.user,
        "backend_port": backend.port,
        "frontend_port": frontend.port,
        "backend_url": backend.url,
        "frontend_url": frontend.url,
        "frontend_host": urlparse(frontend.url).netloc,
        "api_url": f"{backend.url}/api",
    }

"""Project-name validation and toolchain checks.

The generator shells out to PHP, Composer, MySQL and the Angular CLI, so each
of them is checked (concurrently) before any prompt is shown.
"""

from __future__ import annotations

import asyncio
import re
from typing import Optional

from pydantic import BaseModel, Field

from .utils import run_command

_PROJECT_NAME_RE = re.compile(r"^[a-z0-9-]+$")

MIN_NODE_VERSION = (14, 0, 0)
MIN_PHP_VERSION = (8, 0, 0)

INSTALL_HINTS: dict[str, str] = {
    "node": "Node.js (14+)",
    "php": "PHP (8.0+)",
    "composer": "Composer",
    "mysql": "MySQL/MariaDB",
    "angular_cli": "Angular CLI (npm install -g @angular/cli)",
}


class NameValidation(BaseModel):
    valid: bool
    message: str = ""


class ToolStatus(BaseModel):
    """Result of probing one external tool."""

    name: str
    installed: bool = False
    version: Optional[str] = None
    valid: bool = False


class DependencyReport(BaseModel):
    """Aggregated toolchain status."""

    node: ToolStatus
    php: ToolStatus
    composer: ToolStatus
    mysql: ToolStatus
    angular_cli: ToolStatus
    details: dict[str, str] = Field(default_factory=dict)

    @property
    def all_installed(self) -> bool:
        return all(status.installed and status.valid for status in self.tools())

    def tools(self) -> list[ToolStatus]:
        return [self.node, self.php, self.composer, self.mysql, self.angular_cli]

    def missing(self) -> list[str]:
        """Install hints for every tool that is absent or too old."""
        return [
            INSTALL_HINTS[status.name]
            for status in self.tools()
            if not (status.installed and status.valid)
        ]


# ---------------------------------------------------------------------------
# Project name
# ---------------------------------------------------------------------------


def validate_project_name(name: str) -> NameValidation:
    """Check that *name* is usable as a directory and package name.

    Examples::

        validate_project_name("my-app") -> valid
        validate_project_name("My App") -> invalid (lowercase, digits, hyphens only)
        validate_project_name("ab")     -> invalid (too short)
    """
    if not name:
        return NameValidation(valid=False, message="The project name cannot be empty")
    if not _PROJECT_NAME_RE.match(name):
        return NameValidation(
            valid=False,
            message="The name may only contain lowercase letters, numbers and hyphens",
        )
    if len(name) < 3:
        return NameValidation(valid=False, message="The name must be at least 3 characters long")
    return NameValidation(valid=True)


# ---------------------------------------------------------------------------
# Version helpers
# ---------------------------------------------------------------------------


def parse_version(text: str) -> Optional[tuple[int, int, int]]:
    """Extract the first ``X.Y.Z`` (optionally ``vX.Y.Z``) from *text*."""
    match = re.search(r"v?(\d+)\.(\d+)\.(\d+)", text or "")
    if not match:
        return None
    return (int(match.group(1)), int(match.group(2)), int(match.group(3)))


def _format_version(version: Optional[tuple[int, int, int]]) -> Optional[str]:
    return ".".join(str(part) for part in version) if version else None


# ---------------------------------------------------------------------------
# Tool checks
# ---------------------------------------------------------------------------


async def check_node() -> ToolStatus:
    rc, stdout, _ = await run_command(["node", "--version"], timeout=30)
    if rc != 0:
        return ToolStatus(name="node")
    version = parse_version(stdout)
    return ToolStatus(
        name="node",
        installed=True,
        version=_format_version(version),
        valid=version is not None and version >= MIN_NODE_VERSION,
    )


async def check_php() -> ToolStatus:
    rc, stdout, _ = await run_command(["php", "-v"], timeout=30)
    if rc != 0:
        return ToolStatus(name="php")
    match = re.search(r"PHP (\d+\.\d+\.\d+)", stdout)
    version = parse_version(match.group(1)) if match else None
    return ToolStatus(
        name="php",
        installed=True,
        version=_format_version(version),
        valid=version is not None and version >= MIN_PHP_VERSION,
    )


async def check_composer() -> ToolStatus:
    rc, stdout, _ = await run_command(["composer", "--version"], timeout=30)
    if rc != 0:
        return ToolStatus(name="composer")
    match = re.search(r"Composer version (\d+\.\d+\.\d+)", stdout)
    return ToolStatus(
        name="composer",
        installed=True,
        version=match.group(1) if match else None,
        valid=True,
    )


async def check_mysql() -> ToolStatus:
    rc, stdout, _ = await run_command(["mysql", "--version"], timeout=30)
    if rc != 0:
        rc, stdout, _ = await run_command(["mysqld", "--version"], timeout=30)
        if rc != 0:
            return ToolStatus(name="mysql")
    return ToolStatus(
        name="mysql",
        installed=True,
        version=_format_version(parse_version(stdout)) or "installed",
        valid=True,
    )


async def check_angular_cli() -> ToolStatus:
    rc, stdout, _ = await run_command(["ng", "version"], timeout=60)
    if rc != 0:
        return ToolStatus(name="angular_cli")
    match = re.search(r"Angular CLI: (\d+\.\d+\.\d+)", stdout)
    return ToolStatus(
        name="angular_cli",
        installed=True,
        version=match.group(1) if match else None,
        valid=True,
    )


async def check_dependencies() -> DependencyReport:
    """Check every required tool concurrently."""
    node, php, composer, mysql, angular_cli = await asyncio.gather(
        check_node(),
        check_php(),
        check_composer(),
        check_mysql(),
        check_angular_cli(),
    )
    return DependencyReport(
        node=node,
        php=php,
        composer=composer,
        mysql=mysql,
        angular_cli=angular_cli,
        details={
            status.name: status.version or ("missing" if not status.installed else "unknown")
            for status in (node, php, composer, mysql, angular_cli)
        },
    )

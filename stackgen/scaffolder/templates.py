"""Jinja2 overlays for freshly generated Laravel and Angular trees.

``composer create-project`` and ``ng new`` produce stock skeletons; the
templates under ``stackgen/scaffolder/templates/<stack>/`` hold the files
stackgen replaces or adds on top of them.  A template's path below its stack
folder is the path of the generated file, minus the ``.j2`` suffix.
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

TEMPLATE_ROOT = Path(__file__).parent / "templates"
TEMPLATE_SUFFIX = ".j2"


class TemplateRenderer:
    """Loads the packaged overlays and writes them into a project tree.

    Rendering is strict: a variable missing from the context is an error,
    never an empty string in a generated PHP or TypeScript file.
    """

    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root) if root is not None else TEMPLATE_ROOT
        self.env = Environment(
            loader=FileSystemLoader(str(self.root)),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["title_case"] = _title_case_filter

    def render(self, name: str, context: dict[str, Any]) -> str:
        """Render the template *name* (e.g. ``"laravel/routes/api.php.j2"``)."""
        return self.env.get_template(name).render(**context)

    async def render_to_file(self, name: str, target: str | Path, context: dict[str, Any]) -> Path:
        """Render *name* and write it to *target*, creating parent folders."""
        target = Path(target)
        await asyncio.to_thread(_store, target, self.render(name, context))
        return target

    async def render_tree(self, stack: str, project_dir: str | Path, context: dict[str, Any]) -> list[Path]:
        """Overlay every template of *stack* onto *project_dir*.

        ``laravel/config/cors.php.j2`` rendered onto ``/work/app-backend``
        replaces ``/work/app-backend/config/cors.php``.  An unknown stack
        renders nothing.
        """
        project_dir = Path(project_dir)
        written = []
        for name in self.list_templates(stack):
            relative = Path(name).relative_to(stack)
            target = project_dir / relative.with_suffix("")
            written.append(await self.render_to_file(name, target, context))
        return written

    def list_templates(self, stack: str = "") -> list[str]:
        """Template names below *stack* (all of them when empty), sorted."""
        base = self.root / stack if stack else self.root
        if not base.is_dir():
            return []
        return sorted(
            path.relative_to(self.root).as_posix()
            for path in base.rglob(f"*{TEMPLATE_SUFFIX}")
        )


def _title_case_filter(value: str) -> str:
    """``my-project`` / ``my_project`` -> ``My Project``."""
    return " ".join(word.capitalize() for word in re.split(r"[-_\s]+", value) if word)


def _store(target: Path, text: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")

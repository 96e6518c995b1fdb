"""stackgen scaffolder -- generates the Laravel + Angular project trees.

Quick usage::

    from stackgen.config import Config
    from stackgen.scaffolder import ProjectGenerator

    config = Config(project_name="my-app")
    project_path = await ProjectGenerator(config).generate()
"""

from stackgen.scaffolder.angular import AngularGenerator
from stackgen.scaffolder.base import ScaffoldError, build_context
from stackgen.scaffolder.generator import ProjectGenerator
from stackgen.scaffolder.laravel import LaravelGenerator, update_env
from stackgen.scaffolder.templates import TemplateRenderer

__all__ = [
    "AngularGenerator",
    "LaravelGenerator",
    "ProjectGenerator",
    "ScaffoldError",
    "TemplateRenderer",
    "build_context",
    "update_env",
]

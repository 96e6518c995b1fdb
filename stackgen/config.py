"""stackgen configuration.

Typed configuration for the generator and the development-server session.
All settings use Pydantic v2 models so they can be validated at construction
time and serialised to/from JSON or environment variables without
boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class DatabaseConfig(BaseModel):
    """Connection settings for the project's MySQL database."""

    host: str = Field(default="localhost")
    port: int = Field(default=3306, ge=1, le=65535)
    user: str = Field(default="root")
    password: str = Field(default="")
    name: str = Field(default="", description="Database (schema) name")
    create_if_missing: bool = Field(default=True)

    def url(self, *, with_database: bool = False) -> str:
        """Return a SQLAlchemy URL for the ``mysql+pymysql`` driver."""
        from sqlalchemy.engine import URL

        return URL.create(
            "mysql+pymysql",
            username=self.user,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.name if with_database else None,
        ).render_as_string(hide_password=False)


class ServiceConfig(BaseModel):
    """One development server launched by the orchestrator."""

    role: str = Field(..., description="Role tag, e.g. 'backend' or 'frontend'")
    display_name: str = Field(..., description="Human-readable service name")
    command: str
    args: list[str] = Field(default_factory=list)
    port: int = Field(..., ge=1, le=65535)
    ready_marker: str = Field(..., min_length=1)
    noise_patterns: list[str] = Field(
        default_factory=list,
        description="Regexes for stderr lines that are not worth reporting",
    )

    @property
    def url(self) -> str:
        return f"http://localhost:{self.port}"

    @property
    def command_line(self) -> str:
        return " ".join([self.command, *self.args])


def _default_backend() -> ServiceConfig:
    return ServiceConfig(
        role="backend",
        display_name="Laravel",
        command="php",
        args=["artisan", "serve"],
        port=8000,
        ready_marker="started",
    )


def _default_frontend() -> ServiceConfig:
    return ServiceConfig(
        role="frontend",
        display_name="Angular",
        command="ng",
        args=["serve", "--open"],
        port=4200,
        ready_marker="compiled successfully",
        noise_patterns=["Warning", "Debugger"],
    )


class DevServerConfig(BaseModel):
    """Tuning knobs for the development-server session."""

    model_config = ConfigDict(validate_assignment=True)

    backend: ServiceConfig = Field(default_factory=_default_backend)
    frontend: ServiceConfig = Field(default_factory=_default_frontend)
    startup_delay: float = Field(
        default=3.0, ge=0, description="Settling delay between backend and frontend spawn"
    )
    wait_for_backend: bool = Field(
        default=False,
        description="Also wait for the backend readiness marker before starting the frontend",
    )
    backend_ready_timeout: float = Field(
        default=60.0, gt=0, description="Upper bound for the backend readiness barrier"
    )
    ready_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Abort the session when both services are not ready in time (None = wait forever)",
    )
    channel_size: int = Field(default=64, ge=1, description="Bounded output queue size per process")
    read_chunk_size: int = Field(default=4096, ge=1)

    @property
    def services(self) -> list[ServiceConfig]:
        """Services in required startup order."""
        return [self.backend, self.frontend]

    def apply_env(self) -> "DevServerConfig":
        """Overlay the session variables that are set in the environment.

        Recognised variables: STACKGEN_BACKEND_READY_MARKER,
        STACKGEN_FRONTEND_READY_MARKER, STACKGEN_STARTUP_DELAY,
        STACKGEN_WAIT_FOR_BACKEND, STACKGEN_BACKEND_READY_TIMEOUT,
        STACKGEN_READY_TIMEOUT.  Unset variables leave the current values alone.
        """
        env = os.environ
        if env.get("STACKGEN_BACKEND_READY_MARKER"):
            self.backend.ready_marker = env["STACKGEN_BACKEND_READY_MARKER"]
        if env.get("STACKGEN_FRONTEND_READY_MARKER"):
            self.frontend.ready_marker = env["STACKGEN_FRONTEND_READY_MARKER"]
        if env.get("STACKGEN_STARTUP_DELAY"):
            self.startup_delay = float(env["STACKGEN_STARTUP_DELAY"])
        if env.get("STACKGEN_WAIT_FOR_BACKEND"):
            self.wait_for_backend = env["STACKGEN_WAIT_FOR_BACKEND"].lower() in ("1", "true", "yes")
        if env.get("STACKGEN_BACKEND_READY_TIMEOUT"):
            self.backend_ready_timeout = float(env["STACKGEN_BACKEND_READY_TIMEOUT"])
        if env.get("STACKGEN_READY_TIMEOUT"):
            self.ready_timeout = float(env["STACKGEN_READY_TIMEOUT"])
        return self


class Config(BaseModel):
    """Global stackgen configuration.

    Created once by the CLI from prompts, flags and environment variables and
    then passed to the generators and the orchestrator.
    """

    project_name: str = Field(default="")
    output_dir: Path = Field(default_factory=Path.cwd)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    devserver: DevServerConfig = Field(default_factory=DevServerConfig)

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def project_path(self) -> Path:
        """Root folder holding both service trees."""
        return self.output_dir / self.project_name

    @property
    def backend_path(self) -> Path:
        return self.project_path / f"{self.project_name}-backend"

    @property
    def frontend_path(self) -> Path:
        return self.project_path / f"{self.project_name}-frontend"

    @property
    def default_db_name(self) -> str:
        """``my-app`` -> ``my_app_db``."""
        return self.project_name.replace("-", "_") + "_db"

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Defaults to ``<project_path>/stackgen.json``.

        Returns:
            The path where the file was written.
        """
        target = path or (self.project_path / "stackgen.json")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            self.model_dump_json(indent=2, exclude={"database": {"password"}}),
            encoding="utf-8",
        )
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            STACKGEN_PROJECT_NAME, STACKGEN_OUTPUT_DIR,
            STACKGEN_DB_HOST, STACKGEN_DB_PORT, STACKGEN_DB_USER,
            STACKGEN_DB_PASSWORD, STACKGEN_DB_NAME,
            STACKGEN_BACKEND_READY_MARKER, STACKGEN_FRONTEND_READY_MARKER,
            STACKGEN_STARTUP_DELAY, STACKGEN_WAIT_FOR_BACKEND,
            STACKGEN_BACKEND_READY_TIMEOUT, STACKGEN_READY_TIMEOUT.
        """
        db_kwargs: dict[str, Any] = {}
        for key, env_name in (
            ("host", "STACKGEN_DB_HOST"),
            ("user", "STACKGEN_DB_USER"),
            ("password", "STACKGEN_DB_PASSWORD"),
            ("name", "STACKGEN_DB_NAME"),
        ):
            if os.environ.get(env_name):
                db_kwargs[key] = os.environ[env_name]
        if os.environ.get("STACKGEN_DB_PORT"):
            db_kwargs["port"] = int(os.environ["STACKGEN_DB_PORT"])

        return cls(
            project_name=os.environ.get("STACKGEN_PROJECT_NAME", ""),
            output_dir=Path(os.environ.get("STACKGEN_OUTPUT_DIR", ".")),
            database=DatabaseConfig(**db_kwargs),
            devserver=DevServerConfig().apply_env(),
        )

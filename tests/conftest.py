"""Shared pytest fixtures for the stackgen test suite.

Provides reusable fixtures for:
- Temporary project directories with backend/frontend trees
- Fake asyncio subprocesses with feedable stdout/stderr streams
- Sample configurations
- A polling helper for asserting on asynchronous state
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from stackgen.config import Config, DatabaseConfig, DevServerConfig, ServiceConfig


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """A generated-project layout: ``shop/shop-backend`` and ``shop/shop-frontend``."""
    project_dir = tmp_path / "shop"
    (project_dir / "shop-backend").mkdir(parents=True)
    (project_dir / "shop-frontend").mkdir(parents=True)
    yield project_dir


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_config(tmp_path: Path) -> Config:
    return Config(
        project_name="shop",
        output_dir=tmp_path,
        database=DatabaseConfig(name="shop_db", user="dev", password="secret"),
    )


@pytest.fixture
def fast_devserver_config() -> DevServerConfig:
    """Default services, short settling delay, no backend readiness barrier."""
    return DevServerConfig(startup_delay=0.05, wait_for_backend=False)


@pytest.fixture
def python_services() -> DevServerConfig:
    """Two real Python child processes that print their readiness markers."""
    script = (
        "import sys, time\n"
        "sys.stdout.write({text!r}); sys.stdout.flush()\n"
        "time.sleep(30)\n"
    )
    return DevServerConfig(
        backend=ServiceConfig(
            role="backend",
            display_name="Laravel",
            command=sys.executable,
            args=["-c", script.format(text="Laravel development server started\n")],
            port=8000,
            ready_marker="server started",
        ),
        frontend=ServiceConfig(
            role="frontend",
            display_name="Angular",
            command=sys.executable,
            args=["-c", script.format(text="Application bundle: compiled successfully\n")],
            port=4200,
            ready_marker="compiled successfully",
        ),
        startup_delay=0.1,
    )


# ---------------------------------------------------------------------------
# Fake subprocesses
# ---------------------------------------------------------------------------


class FakeProcess:
    """Stand-in for ``asyncio.subprocess.Process`` with feedable streams.

    ``terminate()`` is a ``MagicMock`` that also makes the process exit, so
    tests can count termination requests.
    """

    def __init__(self, pid: int = 4242) -> None:
        self.pid = pid
        self.returncode: int | None = None
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.terminate = MagicMock(side_effect=lambda: self.exit(-15))
        self.kill = MagicMock(side_effect=lambda: self.exit(-9))
        self._exited = asyncio.Event()

    def emit(self, text: str | bytes, channel: str = "stdout") -> None:
        data = text.encode("utf-8") if isinstance(text, str) else text
        getattr(self, channel).feed_data(data)

    def exit(self, code: int = 0) -> None:
        if self.returncode is None:
            self.returncode = code
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode


@pytest.fixture
def fake_process() -> Callable[..., FakeProcess]:
    """Factory for :class:`FakeProcess` (call it inside a running loop).

    Usage:
        async def test_spawn(fake_process):
            proc = fake_process()
            with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
                ...
    """
    return FakeProcess


@pytest.fixture
def gated_spawn():
    """A ``create_subprocess_exec`` replacement that blocks until released.

    Returns ``(mock, gate)``; set ``gate`` to let the pending spawn finish
    with the process given to ``mock.processes``.
    """
    gate = asyncio.Event()
    processes: list[FakeProcess] = []

    async def _spawn(*args, **kwargs):
        await gate.wait()
        return processes.pop(0)

    mock = AsyncMock(side_effect=_spawn)
    mock.processes = processes
    return mock, gate


# ---------------------------------------------------------------------------
# Async helpers
# ---------------------------------------------------------------------------


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met within timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds (or fail after *timeout* seconds)."""
    return _wait_until

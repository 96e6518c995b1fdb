"""Startup sequencing for the development servers.

Starts the backend, waits out the settling delay and (when enabled) the
backend readiness barrier, starts the frontend, then keeps the foreground session
alive until the operator interrupts it.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Optional

from ..config import DevServerConfig, ServiceConfig
from ..utils import console, print_error
from .process import ManagedProcess
from .readiness import ReadinessRule
from .session import OrchestrationSession


class OrchestrationSequencer:
    """Runs one orchestration session for a generated project.

    Parameters
    ----------
    config:
        Service definitions and timing knobs.
    backend_path, frontend_path:
        Working directories of the two services.
    datastore_name:
        Database name shown in the status report.
    session:
        Pre-built session (tests use this to control signal routing).
    """

    def __init__(
        self,
        config: DevServerConfig,
        backend_path: str | Path,
        frontend_path: str | Path,
        datastore_name: str,
        *,
        session: Optional[OrchestrationSession] = None,
    ) -> None:
        self.config = config
        self.paths = {
            config.backend.role: Path(backend_path),
            config.frontend.role: Path(frontend_path),
        }
        self.session = session or OrchestrationSession(datastore_name)

    async def run(self) -> int:
        """Start both services and block until the session ends.

        Returns:
            Exit status for the program: ``0`` after an operator interrupt,
            ``1`` when a spawn failed or a readiness deadline passed.
        """
        session = self.session
        coordinator = session.coordinator
        console.print("\n[bold cyan]🚀 Starting development servers...[/bold cyan]\n")

        async with session:
            if self.config.ready_timeout is not None:
                session.spawn_task(self._watch_readiness(self.config.ready_timeout))

            backend = await self._launch(self.config.backend)
            if backend is not None and await self._settle(backend):
                await self._launch(self.config.frontend)

            await coordinator.wait()
            return coordinator.exit_code

    async def _launch(self, service: ServiceConfig) -> Optional[ManagedProcess]:
        """Spawn one service.  Aborts the session when the spawn fails."""
        coordinator = self.session.coordinator
        if not coordinator.armed:
            return None

        console.print(
            f"[cyan]Starting {service.role} {service.display_name} (port {service.port})...[/cyan]"
        )
        process = ManagedProcess(
            service.role,
            service.command,
            service.args,
            self.paths[service.role],
            channel_size=self.config.channel_size,
            read_chunk_size=self.config.read_chunk_size,
        )
        self.session.track(process, ReadinessRule.from_service(service))

        if not await process.spawn():
            if process.error is not None:
                print_error(f"✗ {process.error}")
                coordinator.request_shutdown(exit_code=1)
            return None

        self.session.attach(process)
        return process

    async def _settle(self, backend: ManagedProcess) -> bool:
        """Wait before the frontend may start.

        Returns:
            ``False`` if the session ended while waiting.
        """
        coordinator = self.session.coordinator
        assert backend.spawn_requested_at is not None

        deadline = backend.spawn_requested_at + self.config.startup_delay
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            if await coordinator.wait(timeout=remaining):
                return False

        if not self.config.wait_for_backend:
            return coordinator.armed
        return await self._backend_barrier(backend)

    async def _backend_barrier(self, backend: ManagedProcess) -> bool:
        coordinator = self.session.coordinator
        timeout = self.config.backend_ready_timeout
        ready = asyncio.create_task(self.session.wait_ready(backend.role))
        stopped = asyncio.create_task(coordinator.wait())

        done, pending = await asyncio.wait(
            {ready, stopped}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if ready in done:
            return coordinator.armed
        if coordinator.armed:
            print_error(f"✗ {backend.role} did not report readiness within {timeout:g}s")
            coordinator.request_shutdown(exit_code=1)
        return False

    async def _watch_readiness(self, timeout: float) -> None:
        if await self.session.wait_all_ready(timeout):
            return
        coordinator = self.session.coordinator
        if coordinator.armed:
            waiting = ", ".join(role for role, ok in self.session.ready.items() if not ok)
            print_error(
                f"✗ Servers not ready after {timeout:g}s (still waiting for: {waiting or 'startup'})"
            )
            coordinator.request_shutdown(exit_code=1)


async def start_servers(
    config: DevServerConfig,
    backend_path: str | Path,
    frontend_path: str | Path,
    datastore_name: str,
) -> int:
    """Convenience wrapper used by the CLI."""
    sequencer = OrchestrationSequencer(config, backend_path, frontend_path, datastore_name)
    return await sequencer.run()

"""Orchestration session and coordinated shutdown.

The :class:`OrchestrationSession` owns every :class:`ManagedProcess` started
for one development run, the per-role readiness flags, and the single
interrupt-handler registration.  It is an async context manager: entering it
arms the :class:`ShutdownCoordinator`; leaving it guarantees that every
tracked process was asked to terminate and that the handler is released.
"""

from __future__ import annotations

import asyncio
import signal
from enum import Enum
from typing import Optional

from rich.panel import Panel
from rich.table import Table

from ..utils import console
from .process import ManagedProcess, ProcessState
from .readiness import ReadinessDetector, ReadinessRule


class ShutdownState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    SHUTTING_DOWN = "shutting_down"
    DONE = "done"


class ShutdownCoordinator:
    """Terminates every tracked process exactly once on interrupt.

    ``IDLE -> ARMED -> SHUTTING_DOWN -> DONE``.  Only the first shutdown
    request does anything; later ones (a second Ctrl+C, the session exiting)
    return ``False`` without touching any process or printing anything.
    """

    def __init__(
        self,
        session: "OrchestrationSession",
        signals: tuple[signal.Signals, ...] = (signal.SIGINT,),
    ) -> None:
        self.session = session
        self.signals = signals
        self.state = ShutdownState.IDLE
        self.exit_code = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._done = asyncio.Event()
        self._installed: list[signal.Signals] = []
        self._previous_handlers: dict[signal.Signals, object] = {}

    @property
    def armed(self) -> bool:
        return self.state is ShutdownState.ARMED

    @property
    def done(self) -> bool:
        return self.state is ShutdownState.DONE

    def arm(self) -> None:
        """Register the interrupt handler.  Allowed once per session."""
        if self.state is not ShutdownState.IDLE:
            raise RuntimeError("shutdown handler is already registered for this session")
        self._loop = asyncio.get_running_loop()
        for sig in self.signals:
            try:
                self._loop.add_signal_handler(sig, self.request_shutdown)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler.
                self._previous_handlers[sig] = signal.signal(
                    sig, lambda *_: self._loop.call_soon_threadsafe(self.request_shutdown)
                )
            self._installed.append(sig)
        self.state = ShutdownState.ARMED

    def release(self) -> None:
        """Unregister the interrupt handler.  Idempotent."""
        while self._installed:
            sig = self._installed.pop()
            if sig in self._previous_handlers:
                signal.signal(sig, self._previous_handlers.pop(sig))
            elif self._loop is not None:
                self._loop.remove_signal_handler(sig)

    def request_shutdown(self, exit_code: int = 0) -> bool:
        """Terminate all tracked processes and finish the session.

        Returns:
            ``True`` if this call performed the shutdown.
        """
        if self.state is not ShutdownState.ARMED:
            return False
        self.state = ShutdownState.SHUTTING_DOWN
        self.exit_code = exit_code

        console.print("\n[yellow]Stopping servers...[/yellow]")
        for process in self.session.processes:
            if process.state is not ProcessState.TERMINATED:
                process.terminate()
        console.print("[green]✓ Servers stopped[/green]\n")

        self.state = ShutdownState.DONE
        self._done.set()
        return True

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until shutdown is done.

        Returns:
            ``True`` if the session shut down, ``False`` if *timeout* expired first.
        """
        if timeout is None:
            await self._done.wait()
            return True
        try:
            await asyncio.wait_for(self._done.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True


class OrchestrationSession:
    """One development run: from first spawn to final shutdown.

    Parameters
    ----------
    datastore_name:
        Display name of the project's database, shown in the status report.
    signals:
        Signals routed to the shutdown coordinator.
    close_timeout:
        Seconds each terminated process gets to exit when the session closes.
    """

    def __init__(
        self,
        datastore_name: str,
        *,
        signals: tuple[signal.Signals, ...] = (signal.SIGINT,),
        close_timeout: float = 5.0,
    ) -> None:
        self.datastore_name = datastore_name
        self.close_timeout = close_timeout
        self.processes: list[ManagedProcess] = []
        self.rules: dict[str, ReadinessRule] = {}
        self.ready: dict[str, bool] = {}
        self.report: Optional[dict[str, str]] = None
        self.coordinator = ShutdownCoordinator(self, signals=signals)
        self._ready_events: dict[str, asyncio.Event] = {}
        self._all_ready = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    async def __aenter__(self) -> "OrchestrationSession":
        self.coordinator.arm()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            self.coordinator.request_shutdown(exit_code=1 if exc_type else 0)
            await self.aclose()
        finally:
            self.coordinator.release()

    # -- Tracking ------------------------------------------------------------

    @property
    def report_emitted(self) -> bool:
        return self.report is not None

    @property
    def all_ready(self) -> bool:
        return bool(self.ready) and all(self.ready.values())

    def track(self, process: ManagedProcess, rule: ReadinessRule) -> None:
        """Add *process* in startup order.  Roles must be unique."""
        if process.role in self.ready:
            raise ValueError(f"a {process.role} process is already tracked")
        self.processes.append(process)
        self.rules[process.role] = rule
        self.ready[process.role] = False
        self._ready_events[process.role] = asyncio.Event()

    def attach(self, process: ManagedProcess) -> ReadinessDetector:
        """Wire the process's output channel to a fresh readiness detector."""
        detector = ReadinessDetector(
            self.rules[process.role],
            on_ready=lambda rule: self.mark_ready(rule.role),
        )
        self.spawn_task(detector.consume(process.channel))
        return detector

    def spawn_task(self, coro) -> asyncio.Task:
        """Run *coro* for the lifetime of the session."""
        task = asyncio.create_task(coro)
        self._tasks.append(task)
        return task

    # -- Readiness -----------------------------------------------------------

    def mark_ready(self, role: str) -> bool:
        """Record that *role* became ready; emit the report when all are."""
        if self.ready.get(role, True):
            return False
        self.ready[role] = True
        self._ready_events[role].set()

        process = next(p for p in self.processes if p.role == role)
        process.mark_ready()
        rule = self.rules[role]
        if self.coordinator.armed:
            console.print(f"[green]✓ {rule.label} running at {rule.endpoint}[/green]")

        self._maybe_emit_report()
        return True

    async def wait_ready(self, role: str) -> None:
        await self._ready_events[role].wait()

    async def wait_all_ready(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(self._all_ready.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def _maybe_emit_report(self) -> bool:
        if self.report is not None or not self.all_ready:
            return False
        if not self.coordinator.armed:
            return False

        report = {self.rules[p.role].label: self.rules[p.role].endpoint for p in self.processes}
        report["Database"] = self.datastore_name
        self.report = report
        self._all_ready.set()
        self._print_report(report)
        return True

    @staticmethod
    def _print_report(report: dict[str, str]) -> None:
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="white")
        grid.add_column(style="cyan")
        for label, value in report.items():
            grid.add_row(f"{label}:", value)

        console.print()
        console.print(
            Panel(
                grid,
                title="[bold green]🎉 Everything is ready![/bold green]",
                subtitle="[yellow]Press Ctrl+C to stop the servers[/yellow]",
                border_style="cyan",
            )
        )

    # -- Teardown ------------------------------------------------------------

    async def aclose(self) -> None:
        """Wait for terminated processes to exit and stop background tasks."""
        spawned = [p for p in self.processes if p.process is not None]
        if spawned:
            await asyncio.gather(*(p.wait_closed(self.close_timeout) for p in spawned))
        for task in self._tasks:
            if not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

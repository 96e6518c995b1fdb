"""Managed development-server processes.

A :class:`ManagedProcess` wraps one long-running external service (``php
artisan serve``, ``ng serve``) for the whole development session: it spawns
the OS process exactly once, streams both output channels into a bounded
queue, and terminates the process at most once, whatever state it is in.
"""

from __future__ import annotations

import asyncio
import codecs
import shutil
import time
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Optional

from ..utils import console

# Sentinel pushed onto the output channel once both streams reached EOF.
END_OF_OUTPUT = None


class ProcessState(str, Enum):
    """Lifecycle of a managed process. Transitions only move forward."""

    STARTING = "starting"
    RUNNING = "running"
    READY = "ready"
    TERMINATED = "terminated"
    FAILED = "failed"


class OutputChunk(NamedTuple):
    """A decoded piece of output read from one channel."""

    channel: str  # "stdout" or "stderr"
    text: str


class SpawnError(Exception):
    """Raised (and recorded) when the OS could not start a service process."""

    def __init__(self, role: str, message: str, cause: Optional[BaseException] = None):
        self.role = role
        self.cause = cause
        super().__init__(message)


class ManagedProcess:
    """One external service process and its observable state.

    Parameters
    ----------
    role:
        Role tag used in progress lines and in the status report.
    command, args:
        Executable and fixed argument list.
    cwd:
        Working directory of the service.
    channel_size:
        Capacity of the bounded output queue.  When the consumer falls
        behind, the readers stop pulling from the pipes until it catches up.
    read_chunk_size:
        Maximum bytes read from a pipe at once.  Chunks carry no line or
        marker alignment guarantees.
    """

    def __init__(
        self,
        role: str,
        command: str,
        args: list[str] | tuple[str, ...] = (),
        cwd: str | Path | None = None,
        *,
        channel_size: int = 64,
        read_chunk_size: int = 4096,
    ) -> None:
        self.role = role
        self.command = command
        self.args = list(args)
        self.cwd = Path(cwd) if cwd is not None else None
        self.read_chunk_size = read_chunk_size

        self.state: Optional[ProcessState] = None
        self.process: Optional[asyncio.subprocess.Process] = None
        self.error: Optional[SpawnError] = None
        self.spawn_requested_at: Optional[float] = None
        self.channel: asyncio.Queue[Optional[OutputChunk]] = asyncio.Queue(maxsize=channel_size)

        self._terminate_requested = False
        self._reader: Optional[asyncio.Task[None]] = None

    def __repr__(self) -> str:
        state = self.state.value if self.state else "new"
        return f"<ManagedProcess {self.role} {self.command_line!r} {state}>"

    # -- Properties ----------------------------------------------------------

    @property
    def command_line(self) -> str:
        return " ".join([self.command, *self.args])

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode if self.process is not None else None

    # -- Lifecycle -----------------------------------------------------------

    async def spawn(self) -> bool:
        """Start the OS process.

        Suspends only while the OS sets the process up.  A spawn failure is
        recorded on :attr:`error` (state ``FAILED``) instead of being raised.

        Returns:
            ``True`` if an OS process now exists for this handle.

        Raises:
            RuntimeError: If called a second time.
        """
        if self.spawn_requested_at is not None:
            raise RuntimeError(f"{self.role} process has already been spawned")
        self.spawn_requested_at = time.monotonic()

        if self.state is ProcessState.TERMINATED:
            # Shutdown won the race before the spawn was even requested.
            return False
        self.state = ProcessState.STARTING

        executable = shutil.which(self.command) or self.command
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *self.args,
                cwd=str(self.cwd) if self.cwd is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            self.error = SpawnError(
                self.role,
                f"Could not start '{self.command_line}' in {self.cwd or '.'}: {exc}",
                cause=exc,
            )
            if self.state is ProcessState.STARTING:
                self.state = ProcessState.FAILED
            return False

        self.process = process
        if self._terminate_requested:
            # terminate() arrived while the OS was still creating the process.
            self._send_terminate()
        else:
            self.state = ProcessState.RUNNING
        self._reader = asyncio.create_task(self._read_output())
        return True

    def mark_ready(self) -> bool:
        """Move ``RUNNING`` to ``READY``.  Any other state is left untouched."""
        if self.state is not ProcessState.RUNNING:
            return False
        self.state = ProcessState.READY
        return True

    def terminate(self) -> bool:
        """Request termination; safe in every state.

        A process still being spawned is terminated as soon as the OS hands
        it over; a process that already exited is left alone.

        Returns:
            ``True`` if this call issued the (single) termination request.
        """
        if self.state in (ProcessState.TERMINATED, ProcessState.FAILED):
            return False
        self.state = ProcessState.TERMINATED
        if self.process is None:
            self._terminate_requested = True
            return True
        self._send_terminate()
        return True

    def _send_terminate(self) -> None:
        assert self.process is not None
        if self.process.returncode is not None:
            return
        try:
            self.process.terminate()
        except ProcessLookupError:
            # Exited between the returncode check and the signal.
            pass

    async def wait_closed(self, timeout: float = 5.0) -> None:
        """Give a terminated process *timeout* seconds to exit, then stop reading."""
        if self.process is not None:
            try:
                await asyncio.wait_for(self.process.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                console.print(
                    f"[yellow]{self.role} (pid {self.pid}) still running "
                    f"{timeout:.0f}s after termination[/yellow]"
                )
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass

    # -- Output streaming ----------------------------------------------------

    async def _read_output(self) -> None:
        """Pump stdout and stderr into :attr:`channel` until both hit EOF."""
        assert self.process is not None
        await asyncio.gather(
            self._pump(self.process.stdout, "stdout"),
            self._pump(self.process.stderr, "stderr"),
        )
        await self.channel.put(END_OF_OUTPUT)

    async def _pump(self, stream: Optional[asyncio.StreamReader], channel: str) -> None:
        if stream is None:
            return
        # Multi-byte characters may straddle two reads.
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await stream.read(self.read_chunk_size)
            if not data:
                tail = decoder.decode(b"", final=True)
                if tail:
                    await self.channel.put(OutputChunk(channel, tail))
                return
            text = decoder.decode(data)
            if text:
                await self.channel.put(OutputChunk(channel, text))

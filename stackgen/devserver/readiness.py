"""Readiness detection on a service's output stream.

A service counts as ready once a configured marker substring shows up in its
output.  Output arrives in arbitrary chunks, so the detector keeps the tail
of each channel around and matches across chunk boundaries.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Callable, Optional

from rich.text import Text

from ..config import ServiceConfig
from ..utils import console
from .process import END_OF_OUTPUT, OutputChunk


@dataclass(frozen=True)
class ReadinessRule:
    """What to look for in one process's output, and how to report it."""

    role: str
    marker: str
    label: str
    endpoint: str = ""
    noise_patterns: tuple[str, ...] = ()

    @classmethod
    def from_service(cls, service: ServiceConfig) -> "ReadinessRule":
        return cls(
            role=service.role,
            marker=service.ready_marker,
            label=f"{service.role.capitalize()} ({service.display_name})",
            endpoint=service.url,
            noise_patterns=tuple(service.noise_patterns),
        )


def print_diagnostic(role: str, line: str) -> None:
    """Default diagnostic sink: one red line per reported stderr line."""
    console.print(Text(f"Error in {role}: {line}", style="red"))


class ReadinessDetector:
    """Fires a one-time ready signal when the marker appears.

    Parameters
    ----------
    rule:
        Marker, label and noise patterns for the watched process.
    on_ready:
        Called with the rule exactly once, on the chunk that completes the
        first occurrence of the marker.
    on_diagnostic:
        Called with ``(role, line)`` for every complete stderr line that does
        not match a noise pattern.
    """

    def __init__(
        self,
        rule: ReadinessRule,
        on_ready: Optional[Callable[[ReadinessRule], None]] = None,
        on_diagnostic: Optional[Callable[[str, str], None]] = None,
    ) -> None:
        if not rule.marker:
            raise ValueError("readiness marker must not be empty")
        self.rule = rule
        self.on_ready = on_ready
        self.on_diagnostic = on_diagnostic or print_diagnostic
        self.fired = False
        self._noise = [re.compile(pattern) for pattern in rule.noise_patterns]
        self._tails: dict[str, str] = {}
        self._partial_line = ""

    def feed(self, chunk: str, channel: str = "stdout") -> bool:
        """Scan one chunk.

        Returns:
            ``True`` only for the chunk that made the detector fire.
        """
        if channel == "stderr":
            self._collect_diagnostics(chunk)
        if self.fired:
            return False

        window = self._tails.get(channel, "") + chunk
        if self.rule.marker in window:
            self.fired = True
            self._tails.clear()
            if self.on_ready is not None:
                self.on_ready(self.rule)
            return True

        # Anything longer than marker-1 chars cannot hold the start of a match.
        keep = len(self.rule.marker) - 1
        self._tails[channel] = window[-keep:] if keep else ""
        return False

    def is_noise(self, line: str) -> bool:
        return any(pattern.search(line) for pattern in self._noise)

    def flush(self) -> None:
        """Report a trailing stderr line that never got its newline."""
        if self._partial_line:
            line, self._partial_line = self._partial_line, ""
            self._report(line)

    async def consume(self, channel: asyncio.Queue[Optional[OutputChunk]]) -> None:
        """Drain *channel* until the end-of-output sentinel."""
        while True:
            item = await channel.get()
            if item is END_OF_OUTPUT:
                break
            self.feed(item.text, item.channel)
        self.flush()

    # -- Diagnostics ---------------------------------------------------------

    def _collect_diagnostics(self, chunk: str) -> None:
        *lines, self._partial_line = (self._partial_line + chunk).split("\n")
        for line in lines:
            self._report(line)

    def _report(self, line: str) -> None:
        line = line.rstrip("\r")
        if not line.strip() or self.is_noise(line):
            return
        self.on_diagnostic(self.rule.role, line)

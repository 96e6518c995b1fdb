"""stackgen -- development-server orchestrator.

Starts the generated backend and frontend as two long-running processes,
detects when each is ready from its output, prints one consolidated status
report, and tears everything down on Ctrl+C.

Public API
----------
.. autoclass:: OrchestrationSequencer
.. autoclass:: OrchestrationSession
.. autoclass:: ShutdownCoordinator
.. autoclass:: ManagedProcess
.. autoclass:: ReadinessDetector
.. autoclass:: ReadinessRule
"""

from .process import ManagedProcess, OutputChunk, ProcessState, SpawnError
from .readiness import ReadinessDetector, ReadinessRule
from .sequencer import OrchestrationSequencer, start_servers
from .session import OrchestrationSession, ShutdownCoordinator, ShutdownState

__all__ = [
    # Process
    "ManagedProcess",
    "OutputChunk",
    "ProcessState",
    "SpawnError",
    # Readiness
    "ReadinessDetector",
    "ReadinessRule",
    # Session
    "OrchestrationSession",
    "ShutdownCoordinator",
    "ShutdownState",
    # Sequencer
    "OrchestrationSequencer",
    "start_servers",
]

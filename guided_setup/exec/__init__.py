"""
Execution module for guided setup.
Handles step processes, the output capture protocol, and background runs.
"""

from .output_capture import parse_outputs, read_outputs
from .run_handle import RunHandle, RunResult
from .coordinator import OutputChunk, RunCoordinator, RunFinished

__all__ = [
    "parse_outputs",
    "read_outputs",
    "RunHandle",
    "RunResult",
    "OutputChunk",
    "RunCoordinator",
    "RunFinished",
]

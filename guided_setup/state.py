"""State Manager for guided setup runs.

Persists the current workflow position and captured outputs so an
interrupted setup can continue where it left off.
"""

import hashlib
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

from .exceptions import StateError

logger = logging.getLogger(__name__)


@dataclass
class RunState:
    """Persisted execution state of a workflow."""
    schema_version: str
    workflow_checksum: str
    started_at: str
    updated_at: str
    current_index: int = 0
    captured_outputs: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunState":
        """Create RunState from dict."""
        return cls(
            schema_version=data["schema_version"],
            workflow_checksum=data["workflow_checksum"],
            started_at=data["started_at"],
            updated_at=data["updated_at"],
            current_index=int(data.get("current_index", 0)),
            captured_outputs={str(k): str(v) for k, v in data.get("captured_outputs", {}).items()},
        )


def workflow_checksum(steps: Sequence[str]) -> str:
    """Identify a workflow by the SHA256 of its step names."""
    sha256 = hashlib.sha256()
    for name in steps:
        sha256.update(name.encode('utf-8'))
        sha256.update(b'\0')
    return f"sha256:{sha256.hexdigest()}"


class StateManager:
    """Loads and atomically writes run state to a JSON file."""

    SCHEMA_VERSION = "1"

    def __init__(self, state_file: Union[str, Path]):
        """Initialize state manager.

        Args:
            state_file: JSON file holding the state; created if missing
        """
        self.state_file = Path(state_file)
        self.state: Optional[RunState] = None

    def load_or_create(self, steps: Sequence[str]) -> RunState:
        """Load the state for this workflow, or start a fresh one.

        A state file written for a different workflow is replaced.

        Args:
            steps: Workflow step names

        Returns:
            Loaded or new RunState

        Raises:
            StateError: The state file exists but cannot be read or written
        """
        checksum = workflow_checksum(steps)

        if self.state_file.exists():
            state = self.load()
            if state.workflow_checksum == checksum:
                logger.info(
                    f"Resuming from {self.state_file} at step {state.current_index + 1}/{len(steps)}"
                )
                return state
            logger.warning(f"State file {self.state_file} belongs to a different workflow, starting over")

        now = datetime.now(timezone.utc).isoformat()
        self.state = RunState(
            schema_version=self.SCHEMA_VERSION,
            workflow_checksum=checksum,
            started_at=now,
            updated_at=now,
        )
        self._write_state()
        return self.state

    def load(self) -> RunState:
        """Load existing state from disk.

        Raises:
            StateError: If the state file is missing or corrupted
        """
        try:
            with open(self.state_file, 'r') as f:
                data = json.load(f)
            self.state = RunState.from_dict(data)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            raise StateError(f"Failed to load state file {self.state_file}: {e}") from e
        return self.state

    def save(self, current_index: int, captured_outputs: Dict[str, str]):
        """Record the executor's position and outputs.

        Raises:
            StateError: If the state could not be written
        """
        if not self.state:
            raise RuntimeError("State not initialized")

        self.state.current_index = current_index
        self.state.captured_outputs = dict(captured_outputs)
        self._write_state()

    def _write_state(self):
        """Write state atomically (temp file + rename)."""
        if not self.state:
            raise RuntimeError("No state to write")

        self.state.updated_at = datetime.now(timezone.utc).isoformat()

        temp_file = self.state_file.with_name(self.state_file.name + '.tmp')
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, 'w') as f:
                json.dump(self.state.to_dict(), f, indent=2)
            temp_file.replace(self.state_file)
        except OSError as e:
            raise StateError(f"Failed to write state file {self.state_file}: {e}") from e

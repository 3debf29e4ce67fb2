"""
Run handle for a single execution attempt of the current step.
Owns the child process and the temporary output capture directory.
"""

import logging
import os
import shutil
import signal
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .output_capture import OUTPUT_FILE_NAME, read_outputs
from ..exceptions import (
    MalformedOutputError,
    RunError,
    StepFailedError,
    StepSpawnError,
)

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Result of one step run."""
    step_name: str
    outputs: Dict[str, str] = field(default_factory=dict)
    returncode: Optional[int] = None
    duration_ms: int = 0
    error: Optional[RunError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RunHandle:
    """
    One invocation of a step script.

    The output directory is created by the executor before the handle exists
    and is always removed by collect(), whatever the outcome.
    """

    def __init__(
        self,
        step_name: str,
        argv: List[str],
        env: Dict[str, str],
        output_dir: Path,
        apply: Callable[[RunResult], None],
        cwd: Optional[Path] = None,
    ):
        """
        Initialize run handle.

        Args:
            step_name: Workflow step name, for logging
            argv: Shell invocation
            env: Complete child environment
            output_dir: Private temporary directory holding the output file
            apply: Merges a finished result into the executor state
            cwd: Working directory for the child (default: current directory)
        """
        self.step_name = step_name
        self.argv = argv
        self.env = env
        self.output_dir = Path(output_dir)
        self.cwd = cwd
        self.process: Optional[subprocess.Popen] = None

        self._apply = apply
        self._spawn_error: Optional[StepSpawnError] = None
        self._started_at: Optional[float] = None
        self._result: Optional[RunResult] = None
        self._cleaned_up = False

    @property
    def output_file(self) -> Path:
        return self.output_dir / OUTPUT_FILE_NAME

    @property
    def stdout(self):
        return self.process.stdout if self.process else None

    @property
    def stderr(self):
        return self.process.stderr if self.process else None

    def start(self, capture_output: bool = True) -> None:
        """
        Spawn the child process and return without waiting for it.

        Args:
            capture_output: Pipe stdout/stderr for a reader; otherwise inherit them

        Raises:
            StepSpawnError: The shell could not be started
        """
        if self.process is not None or self._spawn_error is not None:
            raise RuntimeError(f"Run of step {self.step_name!r} already started")

        pipe = subprocess.PIPE if capture_output else None
        self._started_at = time.time()
        try:
            self.process = subprocess.Popen(
                self.argv,
                cwd=str(self.cwd) if self.cwd else None,
                env=self.env,
                stdin=subprocess.DEVNULL,
                stdout=pipe,
                stderr=pipe,
                start_new_session=True,
            )
        except OSError as e:
            self._spawn_error = StepSpawnError(f"failed to start step {self.step_name!r}: {e}")
            self._cleanup()
            raise self._spawn_error from e

        logger.info(f"Started step {self.step_name!r} (pid {self.process.pid})")

    def collect(self) -> RunResult:
        """
        Block until the child exits, read its outputs and release the output directory.

        Never touches executor state, so it is safe to call from a background thread.
        Outputs written by a failing step are still returned.
        """
        if self._result is not None:
            return self._result

        error: Optional[RunError] = self._spawn_error
        returncode: Optional[int] = None
        outputs: Dict[str, str] = {}

        if self.process is None and error is None:
            error = StepSpawnError(f"step {self.step_name!r} was never started")

        try:
            if self.process is not None:
                returncode = self.process.wait()
                if returncode != 0:
                    error = StepFailedError(returncode)

            if error is None or isinstance(error, StepFailedError):
                try:
                    outputs = read_outputs(self.output_file)
                except MalformedOutputError as e:
                    logger.warning(f"Step {self.step_name!r}: {e}")
                    if error is None:
                        error = e
                except OSError as e:
                    logger.warning(f"Step {self.step_name!r}: failed to read outputs: {e}")
                    if error is None:
                        error = RunError(f"failed to read output file: {e}")
        finally:
            self._cleanup()

        duration_ms = int((time.time() - self._started_at) * 1000) if self._started_at else 0
        self._result = RunResult(
            step_name=self.step_name,
            outputs=outputs,
            returncode=returncode,
            duration_ms=duration_ms,
            error=error,
        )

        if error:
            logger.info(f"Step {self.step_name!r} finished with error: {error}")
        else:
            logger.info(f"Step {self.step_name!r} finished in {duration_ms} ms with {len(outputs)} output(s)")

        return self._result

    def wait(self) -> Dict[str, str]:
        """
        Collect the run and merge its outputs into the executor state.

        Returns:
            The outputs captured by this run

        Raises:
            RunError: The run failed; outputs were still merged
        """
        result = self.collect()
        self._apply(result)
        if result.error:
            raise result.error
        return result.outputs

    def terminate(self) -> None:
        """Send SIGTERM to the step's process group if it is still running."""
        if self.process is None or self.process.poll() is not None:
            return
        logger.info(f"Terminating step {self.step_name!r} (pid {self.process.pid})")
        try:
            os.killpg(self.process.pid, signal.SIGTERM)
        except ProcessLookupError:
            pass

    def discard(self) -> None:
        """Drop a handle that will never be started, removing its output directory."""
        if self.process is not None:
            raise RuntimeError(f"step {self.step_name!r} was already started")
        self._cleanup()

    def _cleanup(self) -> None:
        """Remove the output directory; failures are logged, not raised."""
        if self._cleaned_up:
            return
        self._cleaned_up = True
        try:
            shutil.rmtree(self.output_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove output directory {self.output_dir}: {e}")

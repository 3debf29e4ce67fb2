"""
Workflow executor.
Holds the resolved step bindings, the current position in the workflow and
the outputs captured so far, and builds the run handle for the current step.
"""

import logging
import os
import shlex
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ..exceptions import EndOfWorkflow, NotPreparedError, RunError, StepSpawnError
from ..exec.output_capture import OUTPUT_ENV_VAR, OUTPUT_FILE_NAME, input_env_name
from ..exec.run_handle import RunHandle, RunResult
from ..state import RunState, StateManager
from ..steps import Binding, StepDefinition
from .matcher import Matcher

logger = logging.getLogger(__name__)


class Executor:
    """
    Step-at-a-time workflow execution engine.

    All state mutation (position and captured outputs) happens on the thread
    that calls the executor; run handles only report results back.
    """

    def __init__(
        self,
        workflow: Sequence[str],
        steps: Iterable[StepDefinition],
        state_manager: Optional[StateManager] = None,
        shell_rc_file: Optional[Union[str, Path]] = None,
        outputs_root: Optional[Path] = None,
        cwd: Optional[Path] = None,
        shell: str = "sh",
        base_env: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize workflow executor.

        Args:
            workflow: Ordered workflow step names
            steps: Step catalog
            state_manager: Persists position and outputs after each change
            shell_rc_file: Script sourced before every step, if it exists
            outputs_root: Parent directory for per-run output directories (default: system temp)
            cwd: Working directory for step scripts
            shell: Shell used to run step scripts
            base_env: Environment inherited by steps (default: os.environ)
        """
        self.workflow = workflow
        self.matcher = Matcher(steps)
        self.state_manager = state_manager
        self.shell_rc_file = shell_rc_file
        self.outputs_root = outputs_root
        self.cwd = cwd
        self.shell = shell
        self.base_env = base_env

        # Execution state
        self.current_index = 0
        self.captured_outputs: Dict[str, str] = {}
        self._bindings: Optional[List[Binding]] = None

    @property
    def prepared(self) -> bool:
        return self._bindings is not None

    @property
    def total_steps(self) -> int:
        return len(self.workflow)

    @property
    def bindings(self) -> List[Binding]:
        if self._bindings is None:
            raise NotPreparedError("executor not prepared")
        return list(self._bindings)

    def prepare(self) -> None:
        """
        Bind every workflow step to its definition and reset execution state.

        Raises:
            UnmatchedStepError: A step name matches no definition
            AmbiguousStepError: A step name matches several definitions
        """
        bindings = self.matcher.resolve(self.workflow)
        self._bindings = bindings
        self.current_index = 0
        self.captured_outputs = {}
        logger.info(f"Prepared {len(bindings)} step(s)")

    def restore(self, state: RunState) -> None:
        """Continue from a previously persisted position and outputs."""
        if self._bindings is None:
            raise NotPreparedError("executor not prepared")
        if not 0 <= state.current_index < len(self._bindings):
            logger.warning(f"Ignoring saved position {state.current_index}, out of range")
            self.current_index = 0
        else:
            self.current_index = state.current_index
        self.captured_outputs = dict(state.captured_outputs)

    def current_step(self) -> Binding:
        """Return the binding at the current position."""
        if self._bindings is None:
            raise NotPreparedError("step not prepared: executor.prepare() was not called")
        return self._bindings[self.current_index]

    def next_step(self) -> Binding:
        """
        Advance to the next workflow step.

        Raises:
            EndOfWorkflow: The current step is the last one; position is unchanged
        """
        if self._bindings is None:
            raise NotPreparedError("executor not prepared")
        if self.current_index + 1 >= len(self._bindings):
            raise EndOfWorkflow("no more steps")
        self.current_index += 1
        self._save()
        binding = self.current_step()
        logger.info(f"Advanced to step {binding.index + 1}/{self.total_steps}: {binding.name}")
        return binding

    def step_env(self, step: StepDefinition, output_file: Path) -> Dict[str, str]:
        """Build the child environment for a step."""
        env = dict(os.environ if self.base_env is None else self.base_env)
        for declaration in step.inputs:
            key = input_env_name(declaration.name)
            if declaration.name in self.captured_outputs:
                env[key] = self.captured_outputs[declaration.name]
            else:
                env.pop(key, None)
        env[OUTPUT_ENV_VAR] = str(output_file)
        return env

    def step_script(self, step: StepDefinition) -> str:
        script = step.run if step.run.strip() else ":"
        if self.shell_rc_file:
            rc_file = Path(self.shell_rc_file).expanduser()
            if rc_file.is_file():
                script = f". {shlex.quote(str(rc_file))}\n{script}"
        return script

    def prepare_run(self) -> RunHandle:
        """
        Build a run handle for the current step.

        Creates the private output directory; the handle removes it when collected.

        Raises:
            RunError: The output directory could not be created
        """
        binding = self.current_step()

        try:
            output_dir = Path(tempfile.mkdtemp(
                prefix="outputs-",
                dir=str(self.outputs_root) if self.outputs_root else None,
            ))
        except OSError as e:
            raise RunError(f"failed to create outputs dir: {e}") from e

        output_file = output_dir / OUTPUT_FILE_NAME
        return RunHandle(
            step_name=binding.name,
            argv=[self.shell, "-c", self.step_script(binding.step)],
            env=self.step_env(binding.step, output_file),
            output_dir=output_dir,
            apply=self.apply_result,
            cwd=self.cwd,
        )

    def apply_result(self, result: RunResult) -> None:
        """Merge a finished run's outputs into the captured outputs (last write wins)."""
        if result.outputs:
            self.captured_outputs.update(result.outputs)
            logger.debug(f"Captured outputs from {result.step_name!r}: {sorted(result.outputs)}")
        self._save()

    def run_current_step(self) -> RunResult:
        """
        Run the current step to completion on the calling thread.

        The step inherits this process's stdout and stderr.

        Returns:
            The run result; its outputs are already merged
        """
        handle = self.prepare_run()
        try:
            handle.start(capture_output=False)
        except StepSpawnError:
            pass  # collect() reports the spawn error
        result = handle.collect()
        self.apply_result(result)
        return result

    def _save(self) -> None:
        if self.state_manager is not None:
            self.state_manager.save(self.current_index, self.captured_outputs)

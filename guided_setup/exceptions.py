"""Guided setup exceptions."""

from typing import List, Optional
from dataclasses import dataclass


@dataclass
class ValidationError:
    """Single validation error."""
    message: str
    path: str = ""


class GuidedSetupError(Exception):
    """Base class for all guided setup errors."""


class WorkflowValidationError(GuidedSetupError):
    """Raised when workflow or step definition files fail validation.

    This exception is raised by the loader when validation errors occur,
    allowing the CLI to catch it and map to appropriate exit codes.
    """

    def __init__(self, errors: List[ValidationError]):
        self.errors = errors
        self.exit_code = 2  # Default validation exit code

        messages = []
        for error in errors:
            if error.path:
                messages.append(f"Validation error in {error.path}: {error.message}")
            else:
                messages.append(f"Validation error: {error.message}")

        super().__init__("\n".join(messages))


class PreparationError(GuidedSetupError):
    """Workflow and step catalog are inconsistent."""

    exit_code = 2


class UnmatchedStepError(PreparationError):
    """No step definition matches a workflow step name."""

    def __init__(self, step_name: str):
        self.step_name = step_name
        super().__init__(f"unmatched step {step_name!r}")


class AmbiguousStepError(PreparationError):
    """More than one step definition matches a workflow step name."""

    def __init__(self, step_name: str, count: int):
        self.step_name = step_name
        self.count = count
        super().__init__(f"multiple matching steps for {step_name!r} ({count} matches)")


class NotPreparedError(GuidedSetupError):
    """Executor used before prepare() completed."""


class EndOfWorkflow(GuidedSetupError):
    """Raised by next_step() when the last workflow step is current."""


class RunError(GuidedSetupError):
    """A single step run failed."""


class StepSpawnError(RunError):
    """The step process could not be started."""


class StepFailedError(RunError):
    """The step process exited with a nonzero status."""

    def __init__(self, returncode: int):
        self.returncode = returncode
        super().__init__(f"step exited with status {returncode}")


class MalformedOutputError(RunError):
    """The output capture file contains a line without a '=' delimiter."""

    def __init__(self, line: str, line_number: Optional[int] = None):
        self.line = line
        self.line_number = line_number
        where = f" (line {line_number})" if line_number is not None else ""
        super().__init__(f"invalid output line{where}: {line!r}")


class StateError(GuidedSetupError):
    """Persisted run state could not be loaded or saved."""

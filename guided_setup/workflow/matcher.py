"""Resolve workflow step names against the step catalog."""

import logging
from typing import Iterable, List, Sequence

from ..exceptions import AmbiguousStepError, UnmatchedStepError
from ..steps import Binding, StepDefinition

logger = logging.getLogger(__name__)


class Matcher:
    """Binds every workflow step name to exactly one step definition.

    Resolution stops at the first name that matches no definition or more
    than one definition, in workflow order.
    """

    def __init__(self, steps: Iterable[StepDefinition]):
        self.steps: List[StepDefinition] = list(steps)

    def candidates(self, name: str) -> List[StepDefinition]:
        """Return all definitions whose pattern matches the name."""
        return [step for step in self.steps if step.matches(name)]

    def match(self, name: str) -> StepDefinition:
        """Return the single definition matching the name.

        Raises:
            UnmatchedStepError: No definition matches
            AmbiguousStepError: More than one definition matches
        """
        matched = self.candidates(name)
        if not matched:
            raise UnmatchedStepError(name)
        if len(matched) > 1:
            sources = ", ".join(str(step.source or step.pattern) for step in matched)
            logger.debug(f"Step {name!r} matched by: {sources}")
            raise AmbiguousStepError(name, len(matched))
        return matched[0]

    def resolve(self, workflow: Sequence[str]) -> List[Binding]:
        """Resolve every workflow step name, in order."""
        bindings = []
        for index, name in enumerate(workflow):
            step = self.match(name)
            logger.debug(f"Bound step {index} {name!r} to {step.pattern!r}")
            bindings.append(Binding(index=index, name=name, step=step))
        return bindings

"""Workflow and step definition loader with strict validation."""

import glob
import re
from pathlib import Path
from typing import Any, List, Sequence, Union

import yaml

from guided_setup.exceptions import ValidationError, WorkflowValidationError
from guided_setup.steps import StepDefinition, Workflow


class DefinitionLoader:
    """Loads and validates workflow and step YAML files."""

    STEP_FIELDS = {'match', 'description', 'inputs', 'outputs', 'run'}
    DECLARATION_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

    def __init__(self):
        self.errors: List[ValidationError] = []

    def load_workflow(self, workflow_path: Union[str, Path]) -> Workflow:
        """Load a workflow file: a list of step names, or a mapping with a 'steps' list."""
        self.errors = []
        path = str(workflow_path)
        document = self._read_yaml(path)

        name = None
        if isinstance(document, dict):
            name = document.get('name')
            if name is not None and not isinstance(name, str):
                self._add_error(f"'name' must be a string, got {type(name).__name__}", path)
                name = None
            steps = document.get('steps')
        else:
            steps = document

        if not isinstance(steps, list) or not steps:
            self._add_error("'steps' field is required and must be a non-empty list", path)
            self._raise_validation_errors()

        for i, step in enumerate(steps):
            if not isinstance(step, str) or not step:
                self._add_error(f"Step {i} must be a non-empty string", path)

        self._raise_validation_errors()
        return Workflow(steps=steps, name=name, source=path)

    def load_steps(self, patterns: Sequence[Union[str, Path]]) -> List[StepDefinition]:
        """Load step definitions from every file matching the given glob patterns."""
        self.errors = []
        definitions: List[StepDefinition] = []

        for pattern in patterns:
            matches = sorted(glob.glob(str(Path(pattern).expanduser())))
            if not matches:
                self._add_error(f"No step files match {str(pattern)!r}")
                continue
            for step_file in matches:
                definitions.extend(self._load_step_file(step_file))

        self._raise_validation_errors()
        return definitions

    def _load_step_file(self, path: str) -> List[StepDefinition]:
        document = self._read_yaml(path)
        if document is None:
            return []
        if not isinstance(document, dict):
            self._add_error("Step file must be a YAML object/dictionary", path)
            return []

        steps = document.get('steps', [])
        if not isinstance(steps, list):
            self._add_error("'steps' must be a list", path)
            return []

        definitions = []
        for i, step in enumerate(steps):
            if self._validate_step(step, i, path):
                definitions.append(StepDefinition.from_dict(step, source=path))
        return definitions

    def _validate_step(self, step: Any, index: int, path: str) -> bool:
        """Validate one step entry; returns False if it cannot be built."""
        error_count = len(self.errors)

        if not isinstance(step, dict):
            self._add_error(f"Step {index} must be a dictionary", path)
            return False

        for key in step.keys():
            if key not in self.STEP_FIELDS:
                self._add_error(f"Step {index}: unknown field '{key}'", path)

        match = step.get('match')
        if not match or not isinstance(match, str):
            self._add_error(f"Step {index} missing required 'match' field", path)
        else:
            try:
                re.compile(match)
            except re.error as e:
                self._add_error(f"Step {index}: invalid 'match' pattern {match!r}: {e}", path)

        for text_field in ('description', 'run'):
            value = step.get(text_field)
            if value is not None and not isinstance(value, str):
                self._add_error(f"Step {index}: '{text_field}' must be a string", path)

        for decl_field in ('inputs', 'outputs'):
            self._validate_declarations(step.get(decl_field), f"Step {index}: '{decl_field}'", path)

        return len(self.errors) == error_count

    def _validate_declarations(self, declarations: Any, context: str, path: str):
        if declarations is None:
            return
        if not isinstance(declarations, list):
            self._add_error(f"{context} must be a list", path)
            return
        for i, declaration in enumerate(declarations):
            if not isinstance(declaration, dict) or not isinstance(declaration.get('name'), str):
                self._add_error(f"{context}[{i}] must be a mapping with a 'name' string", path)
            elif not self.DECLARATION_PATTERN.match(declaration['name']):
                self._add_error(
                    f"{context}[{i}] name {declaration['name']!r} is not a valid variable name", path
                )

    def _read_yaml(self, path: str) -> Any:
        try:
            with open(path, 'r') as f:
                return yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            self._add_error(f"Failed to load file: {e}", path)
            self._raise_validation_errors()

    def _add_error(self, message: str, path: str = ""):
        self.errors.append(ValidationError(message=message, path=path))

    def _raise_validation_errors(self):
        if self.errors:
            raise WorkflowValidationError(self.errors)

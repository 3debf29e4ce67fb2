"""Tests for workflow and step file loading and validation."""

import pytest
import tempfile
import yaml
from pathlib import Path

from guided_setup.loader import DefinitionLoader
from guided_setup.exceptions import WorkflowValidationError


class TestLoaderValidation:
    """Test strict validation in the loader."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.workspace = Path(self.temp_dir)
        self.loader = DefinitionLoader()

    def write_yaml(self, name: str, content) -> Path:
        """Helper to write a YAML file."""
        path = self.workspace / name
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.dump(content, f)
        return path

    def test_workflow_mapping(self):
        path = self.write_yaml("setup.workflow", {"name": "setup", "steps": ["intro", "collect-name"]})

        workflow = self.loader.load_workflow(path)

        assert workflow.steps == ("intro", "collect-name")
        assert workflow.name == "setup"
        assert len(workflow) == 2

    def test_workflow_plain_list(self):
        path = self.write_yaml("setup.workflow", ["intro", "outro"])

        assert self.loader.load_workflow(path).steps == ("intro", "outro")

    def test_workflow_without_steps_rejected(self):
        path = self.write_yaml("setup.workflow", {"name": "empty"})

        with pytest.raises(WorkflowValidationError) as exc_info:
            self.loader.load_workflow(path)

        assert exc_info.value.exit_code == 2
        assert any("'steps'" in err.message for err in exc_info.value.errors)
        assert exc_info.value.errors[0].path == str(path)
        assert not hasattr(exc_info.value.errors[0], "exit_code")

    def test_workflow_non_string_step_rejected(self):
        path = self.write_yaml("setup.workflow", {"steps": ["intro", 42, ""]})

        with pytest.raises(WorkflowValidationError) as exc_info:
            self.loader.load_workflow(path)

        assert len(exc_info.value.errors) == 2

    def test_invalid_yaml_rejected(self):
        path = self.workspace / "broken.workflow"
        path.write_text("steps: [unterminated")

        with pytest.raises(WorkflowValidationError) as exc_info:
            self.loader.load_workflow(path)

        assert "Failed to load file" in exc_info.value.errors[0].message

    def test_step_files_loaded_from_globs(self):
        self.write_yaml("steps/a.yml", {"steps": [
            {
                "match": "^intro$",
                "description": "Say hello",
                "run": "echo hello",
            },
        ]})
        self.write_yaml("steps/b.yml", {"steps": [
            {
                "match": "^collect-name$",
                "inputs": [{"name": "GREETING"}],
                "outputs": [{"name": "NAME"}],
                "run": "echo NAME=Alice > \"$OUTPUT\"",
            },
        ]})

        steps = self.loader.load_steps([str(self.workspace / "steps" / "*.yml")])

        assert len(steps) == 2
        assert steps[0].matches("intro")
        assert steps[0].description == "Say hello"
        assert steps[0].inputs == []
        assert [d.name for d in steps[1].inputs] == ["GREETING"]
        assert [d.name for d in steps[1].outputs] == ["NAME"]
        assert steps[1].source.endswith("b.yml")

    def test_no_matching_step_files_rejected(self):
        with pytest.raises(WorkflowValidationError) as exc_info:
            self.loader.load_steps([str(self.workspace / "nothing" / "*.yml")])

        assert "No step files match" in exc_info.value.errors[0].message

    def test_step_errors_accumulated(self):
        path = self.write_yaml("steps.yml", {"steps": [
            {"description": "no match"},
            {"match": "([unclosed"},
            {"match": "^ok$", "outputs": [{"name": "not valid"}]},
            {"match": "^ok2$", "unknown_field": True},
        ]})

        with pytest.raises(WorkflowValidationError) as exc_info:
            self.loader.load_steps([str(path)])

        messages = [err.message for err in exc_info.value.errors]
        assert len(messages) == 4
        assert any("missing required 'match'" in m for m in messages)
        assert any("invalid 'match' pattern" in m for m in messages)
        assert any("not a valid variable name" in m for m in messages)
        assert any("unknown field 'unknown_field'" in m for m in messages)
        assert all(err.path == str(path) for err in exc_info.value.errors)

    def test_empty_step_file_allowed(self):
        path = self.workspace / "empty.yml"
        path.write_text("")

        assert self.loader.load_steps([str(path)]) == []

"""Tests for the command line interface (check and headless run)."""

import json
import os

import pytest
import yaml

from guided_setup.cli.main import main


@pytest.fixture
def project(tmp_path, monkeypatch):
    """A workflow with two steps written to disk; cwd is the project dir."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "setup.workflow").write_text(yaml.dump({"steps": ["intro", "collect-name"]}))
    steps_dir = tmp_path / "steps"
    steps_dir.mkdir()
    (steps_dir / "intro.yml").write_text(yaml.dump({"steps": [
        {"match": "^intro$", "description": "Welcome", "run": "echo welcome"},
    ]}))
    (steps_dir / "collect.yml").write_text(yaml.dump({"steps": [
        {
            "match": "^collect-name$",
            "outputs": [{"name": "NAME"}],
            "run": 'echo "NAME=Alice" >> "$OUTPUT"',
        },
    ]}))
    return tmp_path


def common_args(project):
    return [
        str(project / "setup.workflow"),
        str(project / "steps" / "*.yml"),
        "--log-file", str(project / "guided-setup.log"),
    ]


class TestCheckCommand:
    """Test the check command."""

    def test_check_lists_bindings(self, project, capsys):
        assert main(["check"] + common_args(project)) == 0

        out = capsys.readouterr().out
        assert "1. intro" in out
        assert "2. collect-name" in out

    def test_check_unmatched_step(self, project, capsys):
        (project / "setup.workflow").write_text(yaml.dump({"steps": ["intro", "typo"]}))

        assert main(["check"] + common_args(project)) == 2
        assert "unmatched step 'typo'" in capsys.readouterr().err

    def test_check_ambiguous_step(self, project, capsys):
        (project / "steps" / "dup.yml").write_text(yaml.dump({"steps": [{"match": "intro"}]}))

        assert main(["check"] + common_args(project)) == 2
        assert "multiple matching steps for 'intro'" in capsys.readouterr().err

    def test_check_invalid_step_file(self, project, capsys):
        (project / "steps" / "bad.yml").write_text(yaml.dump({"steps": [{"run": "true"}]}))

        assert main(["check"] + common_args(project)) == 2
        assert "missing required 'match'" in capsys.readouterr().err


class TestHeadlessRun:
    """Test running without the UI."""

    def test_headless_run_persists_state(self, project):
        state_file = project / "state.json"
        args = ["run", "--headless", "--statefile", str(state_file), "--rcfile", str(project / "no-rc")]

        assert main(args + common_args(project)) == 0

        data = json.loads(state_file.read_text())
        assert data["current_index"] == 1
        assert data["captured_outputs"] == {"NAME": "Alice"}

    def test_headless_run_stops_on_failure(self, project, capsys):
        (project / "steps" / "intro.yml").write_text(yaml.dump({"steps": [
            {"match": "^intro$", "run": "exit 4"},
        ]}))
        state_file = project / "state.json"
        args = ["run", "--headless", "--statefile", str(state_file), "--rcfile", str(project / "no-rc")]

        assert main(args + common_args(project)) == 1

        assert "step 'intro' failed" in capsys.readouterr().err
        assert json.loads(state_file.read_text())["current_index"] == 0

    def test_preparation_failure_before_state_written(self, project):
        (project / "setup.workflow").write_text(yaml.dump({"steps": ["missing"]}))
        state_file = project / "state.json"

        assert main(["run", "--headless", "--statefile", str(state_file)] + common_args(project)) == 2
        assert not os.path.exists(state_file)

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

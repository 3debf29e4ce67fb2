"""Shared fixtures for guided setup tests."""

import pytest

from guided_setup.steps import Declaration, RegexPattern, StepDefinition


def make_step(pattern, run="", inputs=(), outputs=(), description="", source=None):
    """Build a step definition from plain values."""
    return StepDefinition(
        pattern=RegexPattern(pattern),
        description=description,
        inputs=[Declaration(name) for name in inputs],
        outputs=[Declaration(name) for name in outputs],
        run=run,
        source=source,
    )


@pytest.fixture
def step_factory():
    return make_step


@pytest.fixture
def outputs_root(tmp_path):
    """Directory receiving the per-run output directories."""
    root = tmp_path / "outputs"
    root.mkdir()
    return root

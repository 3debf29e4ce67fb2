"""Tests for resolving workflow step names against the step catalog."""

import pytest

from guided_setup.exceptions import AmbiguousStepError, PreparationError, UnmatchedStepError
from guided_setup.steps import RegexPattern, StepDefinition
from guided_setup.workflow.matcher import Matcher


class TestMatcher:
    """Test step resolution."""

    def test_every_step_bound_in_workflow_order(self, step_factory):
        intro = step_factory(r"^intro$")
        collect = step_factory(r"^collect-")
        matcher = Matcher([collect, intro])

        bindings = matcher.resolve(["intro", "collect-name", "collect-email"])

        assert [b.name for b in bindings] == ["intro", "collect-name", "collect-email"]
        assert [b.index for b in bindings] == [0, 1, 2]
        assert bindings[0].step is intro
        assert bindings[1].step is collect
        assert bindings[2].step is collect

    def test_unmatched_step_named(self, step_factory):
        matcher = Matcher([step_factory(r"^intro$")])

        with pytest.raises(UnmatchedStepError) as exc_info:
            matcher.resolve(["intro", "typo-step", "also-missing"])

        assert exc_info.value.step_name == "typo-step"
        assert "typo-step" in str(exc_info.value)
        assert isinstance(exc_info.value, PreparationError)

    def test_ambiguous_step_reports_count(self, step_factory):
        matcher = Matcher([
            step_factory(r"^deploy"),
            step_factory(r"cluster$"),
            step_factory(r"^other$"),
        ])

        with pytest.raises(AmbiguousStepError) as exc_info:
            matcher.resolve(["deploy-cluster"])

        assert exc_info.value.step_name == "deploy-cluster"
        assert exc_info.value.count == 2

    def test_first_failure_wins(self, step_factory):
        """Resolution stops at the first bad name in workflow order."""
        matcher = Matcher([step_factory(r"^a"), step_factory(r"^ab")])

        with pytest.raises(UnmatchedStepError) as exc_info:
            matcher.resolve(["zzz", "abc"])

        assert exc_info.value.step_name == "zzz"

    def test_regex_is_unanchored_search(self):
        pattern = RegexPattern("name")

        assert pattern.matches("collect-name")
        assert pattern.matches("name-check")
        assert not RegexPattern("^name$").matches("collect-name")

    def test_custom_pattern_implementation(self):
        """Any object with matches() can select a step."""

        class Exact:
            def __init__(self, name):
                self.name = name

            def matches(self, name):
                return name == self.name

        custom = StepDefinition(pattern=Exact("intro"))
        matcher = Matcher([custom])

        assert matcher.match("intro") is custom
        with pytest.raises(UnmatchedStepError):
            matcher.match("intro2")

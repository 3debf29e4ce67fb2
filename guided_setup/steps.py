"""Step catalog and workflow data model."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Union


class StepPattern(Protocol):
    """Anything that can decide whether it applies to a workflow step name."""

    def matches(self, name: str) -> bool:
        ...


class RegexPattern:
    """Regular expression step pattern.

    Matching is an unanchored search: ``collect`` hits ``collect-name``.
    Use ``^`` and ``$`` to require an exact name.
    """

    def __init__(self, pattern: Union[str, "re.Pattern[str]"]):
        self.regex = re.compile(pattern) if isinstance(pattern, str) else pattern

    @property
    def source(self) -> str:
        return self.regex.pattern

    def matches(self, name: str) -> bool:
        return self.regex.search(name) is not None

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RegexPattern):
            return self.regex.pattern == other.regex.pattern
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.regex.pattern)

    def __repr__(self) -> str:
        return f"RegexPattern({self.regex.pattern!r})"


@dataclass(frozen=True)
class Declaration:
    """A named step input or output."""
    name: str


@dataclass(frozen=True)
class StepDefinition:
    """Concrete step implementation from the step catalog."""
    pattern: StepPattern
    description: str = ""
    inputs: List[Declaration] = field(default_factory=list)
    outputs: List[Declaration] = field(default_factory=list)
    run: str = ""
    source: Optional[str] = None  # File the definition was loaded from

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[str] = None) -> "StepDefinition":
        """Create a definition from a decoded step file entry."""
        return cls(
            pattern=RegexPattern(data["match"]),
            description=data.get("description") or "",
            inputs=[Declaration(item["name"]) for item in data.get("inputs") or []],
            outputs=[Declaration(item["name"]) for item in data.get("outputs") or []],
            run=data.get("run") or "",
            source=source,
        )

    def matches(self, name: str) -> bool:
        return self.pattern.matches(name)


@dataclass(frozen=True)
class Workflow:
    """Ordered, immutable list of abstract step names."""
    steps: tuple
    name: Optional[str] = None
    source: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "steps", tuple(self.steps))

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)


@dataclass(frozen=True)
class Binding:
    """A workflow step name resolved to its step definition."""
    index: int
    name: str
    step: StepDefinition

from __future__ import annotations

from dataclasses import dataclass, field

from step_kernel.kernel.data_table import DataTable

StepArgument = DataTable | str


@dataclass(frozen=True, slots=True)
class PickleStep:
    # One executable step; argument is a data table or a doc string.
    id: str
    text: str
    argument: StepArgument | None = None


@dataclass(frozen=True, slots=True)
class Pickle:
    # A compiled scenario as produced by the Gherkin compiler (input to the runner).
    id: str
    name: str
    uri: str = ""
    tags: tuple[str, ...] = ()
    steps: tuple[PickleStep, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Accept lists from callers but store immutable tuples.
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "steps", tuple(self.steps))
        for tag in self.tags:
            if not isinstance(tag, str) or not tag.startswith("@"):
                raise ValueError(f"Pickle tags must be strings starting with '@', got {tag!r}")

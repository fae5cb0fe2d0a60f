from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from step_kernel.kernel.expression import StepExpression, StepPattern
from step_kernel.kernel.pickle import Pickle, PickleStep
from step_kernel.kernel.position import Position
from step_kernel.kernel.tags import TagPredicate

DEFAULT_HOOK_ORDER = 10000

CaseHookKeyword = Literal["Before", "After"]
StepHookKeyword = Literal["BeforeStep", "AfterStep"]
RunHookKeyword = Literal["BeforeAll", "AfterAll"]

CASE_HOOK_KEYWORDS: tuple[CaseHookKeyword, ...] = ("Before", "After")
STEP_HOOK_KEYWORDS: tuple[StepHookKeyword, ...] = ("BeforeStep", "AfterStep")
RUN_HOOK_KEYWORDS: tuple[RunHookKeyword, ...] = ("BeforeAll", "AfterAll")

StepBody = Callable[..., object]
CaseHookBody = Callable[[object, "CaseHookParameter"], object]
StepHookBody = Callable[[object, "StepHookParameter"], object]
RunHookBody = Callable[[object], object]


@dataclass(frozen=True, slots=True)
class CaseHookParameter:
    # Passed to Before/After hooks.
    pickle: Pickle
    test_case_started_id: str
    gherkin_document: object | None = None


@dataclass(frozen=True, slots=True)
class StepHookParameter:
    # Passed to BeforeStep/AfterStep hooks.
    pickle: Pickle
    pickle_step: PickleStep
    test_case_started_id: str
    test_step_id: str
    gherkin_document: object | None = None


@dataclass(frozen=True, slots=True)
class PreliminaryStepDefinition:
    # Declaration as received; compiled at finalize.
    pattern: StepPattern
    implementation: StepBody
    position: Position | None = None


@dataclass(frozen=True, slots=True)
class StepDefinition:
    id: str
    expression: StepExpression
    implementation: StepBody
    position: Position | None = None


@dataclass(frozen=True, slots=True)
class PreliminaryCaseHook:
    predicate: TagPredicate
    implementation: CaseHookBody
    keyword: CaseHookKeyword
    order: int
    position: Position | None = None
    tags: str | None = None
    name: str | None = None


@dataclass(frozen=True, slots=True)
class CaseHook:
    # Case hooks carry an id so run history can refer back to them.
    id: str
    predicate: TagPredicate
    implementation: CaseHookBody
    keyword: CaseHookKeyword
    order: int
    position: Position | None = None
    tags: str | None = None
    name: str | None = None


@dataclass(frozen=True, slots=True)
class StepHook:
    predicate: TagPredicate
    implementation: StepHookBody
    keyword: StepHookKeyword
    order: int
    position: Position | None = None
    tags: str | None = None
    name: str | None = None


@dataclass(frozen=True, slots=True)
class RunHook:
    # Run hooks are suite-scoped: no tags, no predicate.
    implementation: RunHookBody
    keyword: RunHookKeyword
    order: int
    position: Position | None = None

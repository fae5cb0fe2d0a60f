from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

Status = Literal["passed", "failed", "undefined", "ambiguous", "skipped"]
RecordKind = Literal["BeforeAll", "AfterAll", "Before", "After", "BeforeStep", "AfterStep", "Step"]


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    # Exception raised by a step/hook body or by step resolution.
    type: str
    message: str
    stack: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorInfo:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return cls(type=type(exc).__name__, message=str(exc), stack=stack)


@dataclass(frozen=True, slots=True)
class ExecutionRecord:
    # One hook or step invocation, in execution order.
    kind: RecordKind
    text: str
    status: Status
    t_enter: datetime
    t_exit: datetime
    duration_ms: float
    error: ErrorInfo | None = None
    hook_id: str | None = None


@dataclass(frozen=True, slots=True)
class ScenarioResult:
    pickle_id: str
    name: str
    test_case_started_id: str
    status: Status
    records: tuple[ExecutionRecord, ...]


@dataclass(slots=True)
class RunResult:
    scenarios: list[ScenarioResult] = field(default_factory=list)
    run_records: list[ExecutionRecord] = field(default_factory=list)

    @property
    def success(self) -> bool:
        statuses = [scenario.status for scenario in self.scenarios] + [record.status for record in self.run_records]
        return all(status in ("passed", "skipped") for status in statuses)


class Span:
    # Handle between entering and leaving one hook/step.
    def __init__(self, kind: RecordKind, text: str, hook_id: str | None = None) -> None:
        self.kind = kind
        self.text = text
        self.hook_id = hook_id
        self.t_enter = datetime.now(tz=UTC)

    def finish(self, status: Status, error: BaseException | None = None) -> ExecutionRecord:
        t_exit = datetime.now(tz=UTC)
        return ExecutionRecord(
            kind=self.kind,
            text=self.text,
            status=status,
            t_enter=self.t_enter,
            t_exit=t_exit,
            duration_ms=(t_exit - self.t_enter).total_seconds() * 1000.0,
            error=None if error is None else ErrorInfo.from_exception(error),
            hook_id=self.hook_id,
        )


def worst_status(statuses: list[Status]) -> Status:
    # Scenario status is the most severe status among its records.
    severity: dict[Status, int] = {"passed": 0, "skipped": 1, "undefined": 2, "ambiguous": 3, "failed": 4}
    if not statuses:
        return "passed"
    return max(statuses, key=lambda status: severity[status])

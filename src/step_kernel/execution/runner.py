from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from step_kernel.execution.records import (
    ExecutionRecord,
    RecordKind,
    RunResult,
    ScenarioResult,
    Span,
    Status,
    worst_status,
)
from step_kernel.execution.world import World
from step_kernel.kernel.definitions import CaseHook, CaseHookParameter, RunHook, StepHook, StepHookParameter
from step_kernel.kernel.errors import MissingDefinitionError, MultipleDefinitionsError
from step_kernel.kernel.ids import IdGenerator, uuid_ids
from step_kernel.kernel.pickle import Pickle, PickleStep
from step_kernel.kernel.registry import Registry
from step_kernel.kernel.tags import AlwaysTrue, TagPredicate
from step_kernel.observability.logging import LogMessage, LogSink

_NOT_PASSED: frozenset[Status] = frozenset({"failed", "undefined", "ambiguous"})


@dataclass(slots=True)
class Runner:
    # Executes pickles against a finalized registry. Every hook and step is awaited before the
    # next one starts, so resolution order is also execution order. After/AfterStep hooks always
    # run once their Before counterpart ran; the first failure skips the remaining steps.
    registry: Registry
    world_factory: Callable[[Pickle], object] = World
    dry_run: bool = False
    tag_filter: TagPredicate = field(default_factory=AlwaysTrue)
    log_sink: LogSink | None = None
    new_id: IdGenerator = field(default_factory=uuid_ids)

    async def run(self, pickles: Iterable[Pickle]) -> RunResult:
        result = RunResult()
        self._log("info", "run started", dry_run=self.dry_run)
        # Run hooks have no scenario; they get a context without a pickle.
        suite_context = World()
        aborted = False
        if not self.dry_run:
            for hook in self.registry.resolve_before_all_hooks():
                record = await self._invoke("BeforeAll", _label(hook), self.registry.run_run_hook, suite_context, hook)
                result.run_records.append(record)
                if record.status in _NOT_PASSED:
                    aborted = True
                    break
        if not aborted:
            for pickle in pickles:
                if not self.tag_filter.evaluate(pickle.tags):
                    continue
                result.scenarios.append(await self.run_pickle(pickle))
        if not self.dry_run:
            for hook in self.registry.resolve_after_all_hooks():
                record = await self._invoke("AfterAll", _label(hook), self.registry.run_run_hook, suite_context, hook)
                result.run_records.append(record)
        self._log(
            "info" if result.success else "error",
            "run finished",
            scenarios=len(result.scenarios),
            success=result.success,
        )
        return result

    async def run_pickle(self, pickle: Pickle) -> ScenarioResult:
        world = self.world_factory(pickle)
        test_case_started_id = self.new_id()
        tags = list(pickle.tags)
        records: list[ExecutionRecord] = []
        failed = False
        case_parameter = CaseHookParameter(pickle=pickle, test_case_started_id=test_case_started_id)

        if not self.dry_run:
            for hook in self.registry.resolve_before_hooks(tags):
                record = await self._invoke(
                    "Before", _label(hook), self.registry.run_case_hook, world, hook, case_parameter, hook_id=hook.id
                )
                records.append(record)
                if record.status in _NOT_PASSED:
                    failed = True
                    break

        for pickle_step in pickle.steps:
            if failed:
                records.append(Span("Step", pickle_step.text).finish("skipped"))
                continue
            step_records = await self._run_step(world, pickle, pickle_step, test_case_started_id, tags)
            records.extend(step_records)
            failed = any(record.status in _NOT_PASSED for record in step_records)

        if not self.dry_run:
            for hook in self.registry.resolve_after_hooks(tags):
                records.append(
                    await self._invoke(
                        "After", _label(hook), self.registry.run_case_hook, world, hook, case_parameter, hook_id=hook.id
                    )
                )

        status = worst_status([record.status for record in records])
        self._log(
            "info" if status not in _NOT_PASSED else "error",
            "scenario finished",
            pickle_id=pickle.id,
            name=pickle.name,
            status=status,
        )
        return ScenarioResult(
            pickle_id=pickle.id,
            name=pickle.name,
            test_case_started_id=test_case_started_id,
            status=status,
            records=tuple(records),
        )

    async def _run_step(
        self,
        world: object,
        pickle: Pickle,
        pickle_step: PickleStep,
        test_case_started_id: str,
        tags: list[str],
    ) -> list[ExecutionRecord]:
        if self.dry_run:
            # Dry runs still resolve and bind arguments; the body is never invoked.
            record = await self._invoke(
                "Step",
                pickle_step.text,
                self.registry.run_step_definition,
                world,
                pickle_step.text,
                True,
                pickle_step.argument,
                ok_status="skipped",
            )
            return [record]

        records: list[ExecutionRecord] = []
        parameter = StepHookParameter(
            pickle=pickle,
            pickle_step=pickle_step,
            test_case_started_id=test_case_started_id,
            test_step_id=pickle_step.id,
        )
        blocked = False
        for hook in self.registry.resolve_before_step_hooks(tags):
            record = await self._invoke("BeforeStep", _label(hook), self.registry.run_step_hook, world, hook, parameter)
            records.append(record)
            if record.status in _NOT_PASSED:
                blocked = True
                break
        if blocked:
            records.append(Span("Step", pickle_step.text).finish("skipped"))
        else:
            records.append(
                await self._invoke(
                    "Step",
                    pickle_step.text,
                    self.registry.run_step_definition,
                    world,
                    pickle_step.text,
                    False,
                    pickle_step.argument,
                )
            )
        for hook in self.registry.resolve_after_step_hooks(tags):
            records.append(
                await self._invoke("AfterStep", _label(hook), self.registry.run_step_hook, world, hook, parameter)
            )
        return records

    async def _invoke(
        self,
        kind: RecordKind,
        text: str,
        fn: Callable[..., object],
        *args: object,
        hook_id: str | None = None,
        ok_status: Status = "passed",
    ) -> ExecutionRecord:
        span = Span(kind, text, hook_id)
        try:
            outcome = fn(*args)
            if inspect.isawaitable(outcome):
                await outcome
        except MissingDefinitionError as exc:
            record = span.finish("undefined", exc)
        except MultipleDefinitionsError as exc:
            record = span.finish("ambiguous", exc)
        except Exception as exc:  # noqa: BLE001 - body failures become records; the run goes on
            record = span.finish("failed", exc)
        else:
            record = span.finish(ok_status)
        if record.status in _NOT_PASSED:
            self._log("warning", f"{kind} {record.status}", record=record)
        return record

    def _log(self, level: str, message: str, **fields: object) -> None:
        if self.log_sink is not None:
            self.log_sink.emit(LogMessage(level=level, message=message, fields=dict(fields)))


def _label(hook: CaseHook | StepHook | RunHook) -> str:
    name = getattr(hook, "name", None)
    if name:
        return name
    return getattr(hook.implementation, "__qualname__", repr(hook.implementation))

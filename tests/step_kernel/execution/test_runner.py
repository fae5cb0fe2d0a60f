from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

import pytest

from step_kernel.execution.records import ExecutionRecord
from step_kernel.execution.runner import Runner
from step_kernel.execution.world import World
from step_kernel.kernel.data_table import DataTable
from step_kernel.kernel.ids import incrementing_ids
from step_kernel.kernel.pickle import Pickle, PickleStep
from step_kernel.kernel.registry import Registry
from step_kernel.kernel.tags import compile_tag_expression
from step_kernel.observability.logging import LogMessage


@dataclass(slots=True)
class _CollectingSink:
    # LogSink stub keeps emitted messages in memory.
    messages: list[LogMessage] = field(default_factory=list)

    def emit(self, message: LogMessage) -> None:
        self.messages.append(message)


def _registry(declare: Callable[[Registry], None]) -> Registry:
    registry = Registry()
    declare(registry)
    registry.finalize(incrementing_ids())
    return registry


def _pickle(*texts: str, tags: tuple[str, ...] = (), name: str = "scenario") -> Pickle:
    steps = [PickleStep(id=f"s{index}", text=text) for index, text in enumerate(texts)]
    return Pickle(id=f"pickle-{name}", name=name, tags=tags, steps=steps)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_hooks_and_steps_run_in_resolution_order() -> None:
    # Before -> (BeforeStep -> step -> AfterStep)* -> After, awaiting async bodies in turn.
    events: list[str] = []

    async def slow_step(world: World, count: int) -> None:
        await asyncio.sleep(0.01)
        events.append(f"step {count}")

    def declare(registry: Registry) -> None:
        registry.define_before(lambda world, p: events.append("before"))
        registry.define_before_step(lambda world, p: events.append(f"before step {p.pickle_step.text}"))
        registry.define_step("wait {int}", slow_step)
        registry.define_after_step(lambda world, p: events.append("after step"))
        registry.define_after(lambda world, p: events.append("after"))

    runner = Runner(registry=_registry(declare))
    result = await runner.run([_pickle("wait 1", "wait 2")])

    assert events == [
        "before",
        "before step wait 1",
        "step 1",
        "after step",
        "before step wait 2",
        "step 2",
        "after step",
        "after",
    ]
    assert result.success
    assert result.scenarios[0].status == "passed"
    assert [record.kind for record in result.scenarios[0].records] == [
        "Before",
        "BeforeStep",
        "Step",
        "AfterStep",
        "BeforeStep",
        "Step",
        "AfterStep",
        "After",
    ]


@pytest.mark.asyncio
async def test_failure_skips_remaining_steps_but_after_hooks_run() -> None:
    # The first failing step marks later steps skipped; After hooks still run.
    events: list[str] = []

    def explode(world: World) -> None:
        raise RuntimeError("kaboom")

    def declare(registry: Registry) -> None:
        registry.define_step("ok", lambda world: events.append("ok"))
        registry.define_step("explode", explode)
        registry.define_after(lambda world, p: events.append("after"))

    result = await Runner(registry=_registry(declare)).run([_pickle("ok", "explode", "ok")])

    scenario = result.scenarios[0]
    assert events == ["ok", "after"]
    assert scenario.status == "failed"
    assert [(r.kind, r.status) for r in scenario.records] == [
        ("Step", "passed"),
        ("Step", "failed"),
        ("Step", "skipped"),
        ("After", "passed"),
    ]
    failed = scenario.records[1]
    assert failed.error is not None
    assert failed.error.type == "RuntimeError"
    assert failed.error.message == "kaboom"
    assert not result.success


@pytest.mark.asyncio
async def test_undefined_and_ambiguous_steps_are_classified() -> None:
    # Resolution errors become undefined/ambiguous records.
    def declare(registry: Registry) -> None:
        registry.define_step("twice", lambda world: None)
        registry.define_step("twice", lambda world: None)

    runner = Runner(registry=_registry(declare))
    undefined = await runner.run_pickle(_pickle("missing"))
    ambiguous = await runner.run_pickle(_pickle("twice"))
    assert undefined.status == "undefined"
    assert ambiguous.status == "ambiguous"
    assert ambiguous.records[0].error is not None
    assert ambiguous.records[0].error.type == "MultipleDefinitionsError"


@pytest.mark.asyncio
async def test_dry_run_never_invokes_bodies_or_hooks() -> None:
    # Dry runs resolve steps only; nothing user-defined executes.
    calls: list[str] = []

    def declare(registry: Registry) -> None:
        registry.define_before_all(lambda world: calls.append("before all"))
        registry.define_before(lambda world, p: calls.append("before"))
        registry.define_step("a step", lambda world: calls.append("step"))
        registry.define_after_step(lambda world, p: calls.append("after step"))

    result = await Runner(registry=_registry(declare), dry_run=True).run([_pickle("a step", "missing")])

    assert calls == []
    assert result.run_records == []
    assert [(r.kind, r.status) for r in result.scenarios[0].records] == [
        ("Step", "skipped"),
        ("Step", "undefined"),
    ]


@pytest.mark.asyncio
async def test_step_argument_and_world_are_passed() -> None:
    # The world is per scenario and the data table is appended to the arguments.
    seen: list[object] = []
    table = DataTable([["a", "1"]])

    def declare(registry: Registry) -> None:
        registry.define_step("a table:", lambda world, arg: seen.append((world.pickle.name, arg)))

    pickle = Pickle(id="p", name="tables", steps=(PickleStep(id="s", text="a table:", argument=table),))
    await Runner(registry=_registry(declare)).run([pickle])
    assert seen == [("tables", table)]


@pytest.mark.asyncio
async def test_before_all_failure_aborts_scenarios_but_after_all_runs() -> None:
    # A failing BeforeAll stops scenarios; AfterAll hooks still run.
    calls: list[str] = []

    def failing(world: World) -> None:
        raise ValueError("no database")

    def declare(registry: Registry) -> None:
        registry.define_before_all(failing)
        registry.define_after_all(lambda world: calls.append("after all"))
        registry.define_step("a step", lambda world: calls.append("step"))

    result = await Runner(registry=_registry(declare)).run([_pickle("a step")])
    assert calls == ["after all"]
    assert result.scenarios == []
    assert [(r.kind, r.status) for r in result.run_records] == [("BeforeAll", "failed"), ("AfterAll", "passed")]
    assert not result.success


@pytest.mark.asyncio
async def test_tag_filter_and_tagged_hooks() -> None:
    # Only pickles matching the filter run; tagged hooks apply per pickle.
    calls: list[str] = []

    def declare(registry: Registry) -> None:
        registry.define_before(lambda world, p: calls.append(f"smoke hook {p.pickle.name}"), tags="@smoke")
        registry.define_step("a step", lambda world: calls.append(f"step {world.pickle.name}"))

    runner = Runner(registry=_registry(declare), tag_filter=compile_tag_expression("not @wip"))
    result = await runner.run(
        [
            _pickle("a step", tags=("@smoke",), name="one"),
            _pickle("a step", tags=("@regression",), name="two"),
            _pickle("a step", tags=("@wip",), name="three"),
        ]
    )
    assert [scenario.name for scenario in result.scenarios] == ["one", "two"]
    assert calls == ["smoke hook one", "step one", "step two"]


@pytest.mark.asyncio
async def test_hook_records_carry_case_hook_ids() -> None:
    # Case hook records reference the hook id assigned at finalize.
    def declare(registry: Registry) -> None:
        registry.define_before(lambda world, p: None, name="setup")

    registry = _registry(declare)
    scenario = await Runner(registry=registry, new_id=incrementing_ids()).run_pickle(_pickle())
    assert scenario.records[0].hook_id == registry.case_hooks[0].id
    assert scenario.records[0].text == "setup"
    assert scenario.test_case_started_id == "0"


@pytest.mark.asyncio
async def test_log_sink_receives_run_and_failure_messages() -> None:
    # Runs emit structured start/finish messages and warnings for failing steps.
    sink = _CollectingSink()
    await Runner(registry=_registry(lambda registry: None), log_sink=sink).run([_pickle("missing")])

    messages = [(m.level, m.message) for m in sink.messages]
    assert messages[0] == ("info", "run started")
    assert ("warning", "Step undefined") in messages
    assert messages[-1] == ("error", "run finished")
    assert sink.messages[-1].fields["success"] is False


@pytest.mark.asyncio
async def test_dry_run_reports_arity_mismatch_as_failed() -> None:
    # A body that cannot take its captured arguments fails the dry run without being called.
    calls: list[str] = []

    def declare(registry: Registry) -> None:
        registry.define_step("I have {int} cukes", lambda world: calls.append("step"))

    result = await Runner(registry=_registry(declare), dry_run=True).run([_pickle("I have 4 cukes")])
    record = result.scenarios[0].records[0]
    assert calls == []
    assert record.status == "failed"
    assert record.error is not None
    assert record.error.type == "TypeError"


@pytest.mark.asyncio
async def test_failure_log_carries_the_execution_record() -> None:
    # Warnings for non-passing steps embed the record.
    sink = _CollectingSink()
    await Runner(registry=_registry(lambda registry: None), log_sink=sink).run([_pickle("missing")])

    (warning,) = [m for m in sink.messages if m.level == "warning"]
    record = warning.fields["record"]
    assert isinstance(record, ExecutionRecord)
    assert record.status == "undefined"
    assert record.text == "missing"

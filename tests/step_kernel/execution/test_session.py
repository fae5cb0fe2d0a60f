from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

from step_kernel.config.models import LoggingConfig, RunConfig
from step_kernel.execution.session import StepModuleImportError, build_log_sink, open_session, run_session
from step_kernel.kernel.binding import RegistryBinding, default_binding
from step_kernel.kernel.pickle import Pickle, PickleStep
from step_kernel.observability.logging import JsonlLogSink, StdoutLogSink

_STEPS = """
from step_kernel.dsl import after, given


@given("a session step with {int} items")
def session_step(world, count):
    world.items = count


@after
def cleanup(world, parameter):
    world.cleaned = True
"""


@pytest.fixture()
def step_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[str]:
    # Writes a throwaway step module importable by name for the duration of a test.
    name = "session_steps_under_test"
    (tmp_path / f"{name}.py").write_text(_STEPS, encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    yield name
    sys.modules.pop(name, None)


def test_open_session_loads_and_finalizes(step_module: str) -> None:
    # Step modules declare into the session registry, which is finalized and then unbound.
    config = RunConfig(step_modules=[step_module], ids="incrementing")
    with open_session(config) as registry:
        assert default_binding.is_bound
        assert registry.state == "active"
        assert [d.id for d in registry.step_definitions] == ["0"]
        assert [h.id for h in registry.case_hooks] == ["1"]
    assert not default_binding.is_bound


def test_open_session_reloads_modules_between_runs(step_module: str) -> None:
    # A module imported by an earlier session declares again in the next one.
    config = RunConfig(step_modules=[step_module])
    with open_session(config) as first:
        pass
    with open_session(config) as second:
        pass
    assert len(first.step_definitions) == len(second.step_definitions) == 1
    assert first is not second


def test_import_failure_is_wrapped_and_unbinds(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # Broken step modules raise StepModuleImportError and never leave the slot bound.
    (tmp_path / "broken_steps_under_test.py").write_text("raise LookupError('broken')\n", encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    binding = RegistryBinding()

    with pytest.raises(StepModuleImportError) as excinfo:
        with open_session(RunConfig(step_modules=["broken_steps_under_test"]), binding=binding):
            pass
    assert isinstance(excinfo.value.__cause__, LookupError)
    assert not binding.is_bound
    sys.modules.pop("broken_steps_under_test", None)


def test_missing_module_is_wrapped() -> None:
    # Unknown module names fail the same way.
    with pytest.raises(StepModuleImportError):
        with open_session(RunConfig(step_modules=["no_such_step_module_anywhere"])):
            pass
    assert not default_binding.is_bound


@pytest.mark.asyncio
async def test_run_session_executes_pickles(step_module: str) -> None:
    # run_session wires config, registry and runner together.
    pickle = Pickle(
        id="p1",
        name="counting",
        tags=("@smoke",),
        steps=(PickleStep(id="s1", text="a session step with 3 items"),),
    )
    skipped = Pickle(id="p2", name="excluded", tags=("@wip",))
    config = RunConfig(step_modules=[step_module], tags="not @wip")

    result = await run_session(config, [pickle, skipped])

    assert result.success
    assert [scenario.name for scenario in result.scenarios] == ["counting"]
    assert [record.kind for record in result.scenarios[0].records] == ["Step", "After"]
    assert not default_binding.is_bound


def test_build_log_sink_follows_config(tmp_path: Path) -> None:
    # The logging section picks the sink implementation.
    assert build_log_sink(LoggingConfig()) is None
    assert isinstance(build_log_sink(LoggingConfig(sink="stdout")), StdoutLogSink)
    sink = build_log_sink(LoggingConfig(sink="jsonl", path=str(tmp_path / "logs" / "run.jsonl")))
    assert isinstance(sink, JsonlLogSink)
    sink.close()


def test_package_step_modules_declare_again_each_session(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # A package whose __init__ imports its step submodules is fully re-imported per session.
    package = tmp_path / "cuke_steps_pkg" / "steps"
    package.mkdir(parents=True)
    (tmp_path / "cuke_steps_pkg" / "__init__.py").write_text("", encoding="utf-8")
    (package / "__init__.py").write_text("from cuke_steps_pkg.steps import cukes\n", encoding="utf-8")
    (package / "cukes.py").write_text(
        "from step_kernel.dsl import given\n\n\n"
        "@given('I have {int} cukes')\n"
        "def have(world, count):\n"
        "    world.count = count\n",
        encoding="utf-8",
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    config = RunConfig(step_modules=["cuke_steps_pkg.steps"])

    counts: list[int] = []
    try:
        for _ in range(2):
            with open_session(config) as registry:
                counts.append(len(registry.step_definitions))
    finally:
        for name in [key for key in sys.modules if key.startswith("cuke_steps_pkg")]:
            del sys.modules[name]
    assert counts == [1, 1]


@pytest.mark.asyncio
async def test_run_session_shares_ids_between_registry_and_runner(step_module: str) -> None:
    # With incrementing ids, test case ids continue after the ids assigned at finalize.
    pickle = Pickle(id="p1", name="ids", steps=(PickleStep(id="s1", text="a session step with 1 items"),))
    result = await run_session(RunConfig(step_modules=[step_module], ids="incrementing"), [pickle])

    after_record = result.scenarios[0].records[-1]
    assert after_record.hook_id == "1"
    assert result.scenarios[0].test_case_started_id == "2"

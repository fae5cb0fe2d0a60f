from __future__ import annotations

import importlib
import sys
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from step_kernel.config.models import LoggingConfig, RunConfig
from step_kernel.execution.records import RunResult
from step_kernel.execution.runner import Runner
from step_kernel.kernel.binding import RegistryBinding, default_binding
from step_kernel.kernel.errors import StepKernelError
from step_kernel.kernel.ids import IdGenerator, incrementing_ids, uuid_ids
from step_kernel.kernel.pickle import Pickle
from step_kernel.kernel.registry import Registry
from step_kernel.kernel.tags import compile_tag_expression
from step_kernel.observability.logging import JsonlLogSink, LogSink, StdoutLogSink


class StepModuleImportError(StepKernelError):
    # Raised when a configured step module cannot be imported.
    pass


def import_step_modules(module_names: Iterable[str]) -> None:
    # Declarations run at import time, so each module and its submodules are imported fresh.
    importlib.invalidate_caches()
    for name in module_names:
        _evict(name)
        try:
            importlib.import_module(name)
        except StepKernelError:
            raise
        except Exception as exc:  # noqa: BLE001 - wrap with explicit error
            raise StepModuleImportError(f"Failed to import step module: {name}") from exc


def _evict(name: str) -> None:
    prefix = name + "."
    for loaded in [key for key in sys.modules if key == name or key.startswith(prefix)]:
        del sys.modules[loaded]


def id_generator(config: RunConfig) -> IdGenerator:
    return incrementing_ids() if config.ids == "incrementing" else uuid_ids()


def build_log_sink(config: LoggingConfig) -> LogSink | None:
    if config.sink == "stdout":
        return StdoutLogSink(min_level=config.level)
    if config.sink == "jsonl" and config.path:
        return JsonlLogSink(Path(config.path), min_level=config.level)
    return None


@contextmanager
def open_session(
    config: RunConfig,
    *,
    binding: RegistryBinding | None = None,
    new_id: IdGenerator | None = None,
) -> Iterator[Registry]:
    # bind -> load step modules -> finalize -> (run) -> unbind; the slot is freed on any failure.
    # Pass new_id to keep drawing ids from the generator that finalized the registry.
    slot = default_binding if binding is None else binding
    new_id = id_generator(config) if new_id is None else new_id
    registry = Registry(source_positions=config.source_positions)
    with slot.bound(registry):
        import_step_modules(config.step_modules)
        registry.finalize(new_id)
        yield registry


async def run_session(
    config: RunConfig,
    pickles: Iterable[Pickle],
    *,
    binding: RegistryBinding | None = None,
    log_sink: LogSink | None = None,
) -> RunResult:
    sink = log_sink if log_sink is not None else build_log_sink(config.logging)
    new_id = id_generator(config)
    try:
        with open_session(config, binding=binding, new_id=new_id) as registry:
            runner = Runner(
                registry=registry,
                dry_run=config.dry_run,
                tag_filter=compile_tag_expression(config.tags),
                log_sink=sink,
                new_id=new_id,
            )
            return await runner.run(pickles)
    finally:
        if log_sink is None and isinstance(sink, JsonlLogSink):
            sink.close()

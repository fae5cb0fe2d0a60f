from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from step_kernel.kernel.errors import NoActiveRegistryError, RegistryBindingError
from step_kernel.kernel.registry import Registry

_NO_ACTIVE_REGISTRY = (
    "Expected to find an active registry, but none is bound. Steps and hooks can only be declared "
    "while a run is loading its step modules (declaring them from a module imported outside the "
    "run, e.g. a shared support module, is not supported)"
)


@dataclass(slots=True)
class RegistryBinding:
    # Single slot for the registry of the active run: bind -> run -> unbind, never overlapping.
    _registry: Registry | None = None

    @property
    def is_bound(self) -> bool:
        return self._registry is not None

    def bind(self, registry: Registry) -> None:
        if self._registry is not None:
            raise RegistryBindingError("A registry is already bound; unbind it before starting another run")
        self._registry = registry

    def unbind(self) -> None:
        self._registry = None

    def current(self) -> Registry:
        if self._registry is None:
            raise NoActiveRegistryError(_NO_ACTIVE_REGISTRY)
        return self._registry

    @contextmanager
    def bound(self, registry: Registry) -> Iterator[Registry]:
        self.bind(registry)
        try:
            yield registry
        finally:
            self.unbind()


# Process-wide slot used by the declaration DSL; drivers may pass their own binding instead.
default_binding = RegistryBinding()


def with_registry(
    fn: Callable[[], None],
    *,
    source_positions: bool = True,
    binding: RegistryBinding | None = None,
) -> Registry:
    # Collect declarations made by fn() into a fresh registry; the slot is freed even if fn() fails.
    registry = Registry(source_positions=source_positions)
    slot = default_binding if binding is None else binding
    with slot.bound(registry):
        fn()
    return registry

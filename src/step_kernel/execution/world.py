from __future__ import annotations

from step_kernel.kernel.pickle import Pickle


class World:
    # Per-scenario execution context; steps and hooks receive it as their first argument
    # and may store arbitrary attributes on it.
    def __init__(self, pickle: Pickle | None = None) -> None:
        self.pickle = pickle

    def __repr__(self) -> str:
        name = self.pickle.name if self.pickle is not None else None
        return f"World(pickle={name!r})"

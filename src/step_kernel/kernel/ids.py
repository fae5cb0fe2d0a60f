from __future__ import annotations

import itertools
import uuid
from collections.abc import Callable

IdGenerator = Callable[[], str]


def uuid_ids() -> IdGenerator:
    # Default generator: random ids, unique across runs.
    return lambda: uuid.uuid4().hex


def incrementing_ids() -> IdGenerator:
    # Deterministic ids ("0", "1", ...) for reproducible runs and tests.
    counter = itertools.count()
    return lambda: str(next(counter))

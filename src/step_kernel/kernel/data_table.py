from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class DataTable:
    # Tabular step argument; cells are kept as text, conversion is up to the step.
    cells: tuple[tuple[str, ...], ...]

    def __init__(self, rows: Iterable[Sequence[str]]) -> None:
        cells = tuple(tuple(str(cell) for cell in row) for row in rows)
        widths = {len(row) for row in cells}
        if len(widths) > 1:
            raise ValueError(f"DataTable rows must have the same number of cells, got widths {sorted(widths)}")
        object.__setattr__(self, "cells", cells)

    def raw(self) -> list[list[str]]:
        return [list(row) for row in self.cells]

    def rows(self) -> list[list[str]]:
        # All rows except the header row.
        return [list(row) for row in self.cells[1:]]

    def hashes(self) -> list[dict[str, str]]:
        if not self.cells:
            return []
        header = self.cells[0]
        return [dict(zip(header, row)) for row in self.cells[1:]]

    def rows_hash(self) -> dict[str, str]:
        for row in self.cells:
            if len(row) != 2:
                raise ValueError("rows_hash() can only be called on a data table where all rows have exactly two columns")
        return {key: value for key, value in self.cells}

    def transpose(self) -> DataTable:
        return DataTable(zip(*self.cells))

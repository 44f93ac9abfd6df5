"""Program differ: classify cells between two program definitions.

Cells are matched by id and compared by ``code`` only.  Two definitions
with equal source are the same cell even if their compiled bodies are
different objects (every reload recompiles).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from collections.abc import Mapping

    from reflow.reactive.cell import Cell


@dataclass(frozen=True, slots=True)
class CellChange:
    """A single change between two program definitions.

    Attributes:
        kind: Whether the cell was added, removed or modified.
        cell_id: Id of the changed cell.
        old_cell: The cell before the change (None for additions).
        new_cell: The cell after the change (None for removals).

    """

    kind: Literal["added", "removed", "modified"]
    cell_id: str
    old_cell: Cell | None
    new_cell: Cell | None


def diff_cells(old: Mapping[str, Cell], new: Mapping[str, Cell]) -> tuple[CellChange, ...]:
    """Diff two ``{id: Cell}`` mappings.

    Removals come first (in old definition order), then additions and
    modifications in new definition order.  Unchanged cells produce no entry.

    """
    changes = [
        CellChange(kind="removed", cell_id=cell_id, old_cell=cell, new_cell=None)
        for cell_id, cell in old.items()
        if cell_id not in new
    ]
    for cell_id, cell in new.items():
        previous = old.get(cell_id)
        if previous is None:
            changes.append(CellChange(kind="added", cell_id=cell_id, old_cell=None, new_cell=cell))
        elif previous.code != cell.code:
            changes.append(
                CellChange(kind="modified", cell_id=cell_id, old_cell=previous, new_cell=cell)
            )
    return tuple(changes)

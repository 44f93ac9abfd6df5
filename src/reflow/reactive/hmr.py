"""Hot reload: merge a new program definition into live state.

Unchanged cells keep everything: resolved records, scratch, streams and
input snapshots.  State is torn down only where the new definition makes
it stale:

- Every event-flavored stream loses its record, stream and snapshot (its
  scratch survives, so queues and receiver slots carry over).
- Modified and removed cells lose their record, scratch, stream and
  snapshot, along with the sub-programs they created.
- Cells reading an invalidated name lose only their snapshot, so they
  recompute the next time they are ready.

Ordering is computed before anything is touched; a cyclic definition
raises ``CycleError`` and leaves the live program as it was.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from reflow._errors import ConfigError
from reflow.program.differ import diff_cells
from reflow.reactive.cell import base_var_name, is_deferred
from reflow.reactive.graph import dependents, topological_sort

if TYPE_CHECKING:
    from collections.abc import Iterable

    from reflow._types import CellId, Flavor, VarName
    from reflow.reactive.cell import Cell
    from reflow.reactive.state import ProgramState


@dataclass(frozen=True, slots=True)
class MergeResult:
    """Summary of one program merge.

    Attributes:
        added: Ids of new cells.
        removed: Ids of cells no longer defined.
        modified: Ids of cells whose code changed.
        invalidated: Variable names whose state was torn down.
        order: The new evaluation order.

    """

    added: tuple[CellId, ...]
    removed: tuple[CellId, ...]
    modified: tuple[CellId, ...]
    invalidated: frozenset[VarName]
    order: tuple[CellId, ...]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed or self.modified)


def merge_program(state: ProgramState, cells: Iterable[Cell]) -> MergeResult:
    """Install *cells* as the program of *state*, preserving what is unchanged.

    Raises:
        CycleError: If the new definition has a dependency cycle.
        ConfigError: If a gather pattern is not a valid regular expression.

    """
    new_cells = expand_gathers(_dedupe(state, cells))
    order = topological_sort(new_cells.values())
    changes = diff_cells(state.cells, new_cells)

    owners = {output: c.id for c in state.cells.values() for output in c.outputs}
    invalidated: set[VarName] = set()

    for name, stream in list(state.streams.items()):
        if stream.is_behavior:
            continue
        state.teardown_stream(name)
        state.input_snapshots.pop(owners.get(name, name), None)
        invalidated.add(name)

    for change in changes:
        if change.old_cell is None:
            continue
        for output in change.old_cell.outputs:
            state.discard_variable(output)
            invalidated.add(output)
        state.input_snapshots.pop(change.cell_id, None)
        state.drop_components(change.cell_id)

    for cell_id in dependents(new_cells.values(), invalidated):
        state.input_snapshots.pop(cell_id, None)

    state.cells = new_cells
    state.order = order
    state.deferred_reads = frozenset(
        base_var_name(name) for c in new_cells.values() for name in c.inputs if is_deferred(name)
    )
    state.flavors = infer_flavors(new_cells, order)
    _warn_undeclared(state, new_cells)

    result = MergeResult(
        added=tuple(c.cell_id for c in changes if c.kind == "added"),
        removed=tuple(c.cell_id for c in changes if c.kind == "removed"),
        modified=tuple(c.cell_id for c in changes if c.kind == "modified"),
        invalidated=frozenset(invalidated),
        order=order,
    )
    if state.collector is not None:
        state.collector.record_merge(
            added=result.added,
            removed=result.removed,
            modified=result.modified,
            invalidated=tuple(sorted(invalidated)),
            cells=len(new_cells),
        )
    return result


def infer_flavors(cells: dict[CellId, Cell], order: tuple[CellId, ...]) -> dict[VarName, Flavor]:
    """Flavor of every output: the declared one, else event when any input is an event."""
    flavors: dict[VarName, Flavor] = {}
    for cell_id in order:
        c = cells[cell_id]
        flavor = c.flavor
        if flavor is None:
            derived = any(flavors.get(name) == "event" for name in c.inputs if not is_deferred(name))
            flavor = "event" if derived else "behavior"
        for output in c.outputs:
            flavors[output] = flavor
    return flavors


def expand_gathers(cells: dict[CellId, Cell]) -> dict[CellId, Cell]:
    """Replace the inputs of gather cells with the ids matching their pattern."""
    expanded: dict[CellId, Cell] = {}
    for cell_id, c in cells.items():
        if c.gather is None:
            expanded[cell_id] = c
            continue
        try:
            pattern = re.compile(c.gather)
        except re.error as exc:
            msg = f"Cell {cell_id!r}: invalid gather pattern {c.gather!r}: {exc}"
            raise ConfigError(msg) from exc
        matched = [other for other in cells if other != cell_id and pattern.search(other)]
        expanded[cell_id] = c.with_inputs(matched)
    return expanded


def _dedupe(state: ProgramState, cells: Iterable[Cell]) -> dict[CellId, Cell]:
    """Index cells by id; a later definition replaces an earlier one."""
    indexed: dict[CellId, Cell] = {}
    for c in cells:
        if c.id in indexed:
            state.log(f"Cell {c.id!r} is defined more than once; the last definition wins")
            del indexed[c.id]
        indexed[c.id] = c
    return indexed


def _warn_undeclared(state: ProgramState, cells: dict[CellId, Cell]) -> None:
    declared = {output for c in cells.values() for output in c.outputs}
    for c in cells.values():
        for name in c.input_vars:
            if name not in declared and name not in state.resolved:
                state.log(f"Cell {c.id!r} depends on undeclared variable {name!r}")

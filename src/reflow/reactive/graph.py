"""Dependency ordering: Kahn topological sort over cell inputs.

A cell depends on the cells producing its (non-deferred) inputs.  Inputs
produced by no cell add no edge: they are host-injected or simply never
resolve.  Deferred inputs (``$name``) add no edge either, which is how a
program expresses feedback without forming a cycle.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from reflow._errors import CycleError
from reflow.reactive.cell import is_deferred

if TYPE_CHECKING:
    from collections.abc import Iterable

    from reflow._types import CellId, VarName
    from reflow.reactive.cell import Cell


def topological_sort(cells: Iterable[Cell]) -> tuple[CellId, ...]:
    """Order cells so every producer precedes its consumers.

    Cells become ready in definition order and are emitted first-in
    first-out, so independent cells keep their relative order.

    Raises:
        CycleError: If some cells can never become ready.  The error lists
            every cell left unordered.

    """
    cells = list(cells)
    producers: dict[VarName, CellId] = {}
    for c in cells:
        for output in c.outputs:
            producers[output] = c.id

    waiting: dict[CellId, set[VarName]] = {}
    consumers: dict[VarName, list[CellId]] = {}
    for c in cells:
        edges = {name for name in c.inputs if not is_deferred(name) and name in producers}
        waiting[c.id] = edges
        for name in edges:
            consumers.setdefault(name, []).append(c.id)

    outputs = {c.id: c.outputs for c in cells}
    queue = deque(c.id for c in cells if not waiting[c.id])
    order: list[CellId] = []
    while queue:
        cell_id = queue.popleft()
        order.append(cell_id)
        for output in outputs[cell_id]:
            for consumer in consumers.get(output, ()):
                pending = waiting[consumer]
                if output in pending:
                    pending.discard(output)
                    if not pending:
                        queue.append(consumer)

    if len(order) != len(cells):
        ordered = set(order)
        raise CycleError(tuple(c.id for c in cells if c.id not in ordered))
    return tuple(order)


def dependents(cells: Iterable[Cell], names: Iterable[VarName]) -> tuple[CellId, ...]:
    """Return ids of cells reading any of *names* (deferred reads included)."""
    wanted = set(names)
    return tuple(c.id for c in cells if wanted.intersection(c.input_vars))

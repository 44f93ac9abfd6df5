"""Reactive layer: cells, streams and the tick scheduler.

Cells are ordered by the dependency graph, evaluated once per tick by the
program state, and merged in place by hot reload.
"""

from reflow.reactive.cell import Cell, cell, cell_from_function
from reflow.reactive.combinators import Behaviors, Events
from reflow.reactive.graph import dependents, topological_sort
from reflow.reactive.hmr import MergeResult, merge_program
from reflow.reactive.records import IndexedValue, ResolveRecord
from reflow.reactive.runner import TickRunner
from reflow.reactive.state import ProgramState, current_program
from reflow.reactive.streams import Stream, StreamKind

__all__ = [
    "Behaviors",
    "Cell",
    "Events",
    "IndexedValue",
    "MergeResult",
    "ProgramState",
    "ResolveRecord",
    "Stream",
    "StreamKind",
    "TickRunner",
    "cell",
    "cell_from_function",
    "current_program",
    "dependents",
    "merge_program",
    "topological_sort",
]

"""Event model for runtime observability.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal, TypeAlias


# ---------------------------------------------------------------------------
# Scheduler events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TickEvaluated:
    """One scheduler pass completed.

    Attributes:
        tick: Sequence number of the pass (starting at 1).
        time: Logical time of the pass.
        cells_ready: Cells whose readiness check passed.
        cells_executed: Cells whose body actually ran.
        updated: True if any resolved record was written.
        duration_ms: Wall time spent in ``evaluate``.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    tick: int
    time: float
    cells_ready: int
    cells_executed: int
    updated: bool
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class CellEvaluated:
    """A cell body ran.

    Attributes:
        cell_id: The cell that ran.
        time: Logical time of the pass.
        duration_ms: Time spent in the body and stream installation.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    cell_id: str
    time: float
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class AsyncCompleted:
    """An async completion was applied (or dropped) in a tick prelude.

    Attributes:
        name: Variable the completion belongs to.
        outcome: ``resolved``, ``failed`` or ``superseded`` (generation
            guard rejected a stale completion).
        error: ``repr`` of the failure, empty otherwise.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    name: str
    outcome: Literal["resolved", "failed", "superseded"]
    error: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Hot reload events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ProgramMerged:
    """A program definition was merged into the live state.

    Attributes:
        added: Ids of new cells.
        removed: Ids of cells no longer defined.
        modified: Ids of cells whose code changed.
        invalidated: Variable names whose state was torn down.
        cells: Total cells after the merge.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    added: tuple[str, ...]
    removed: tuple[str, ...]
    modified: tuple[str, ...]
    invalidated: tuple[str, ...]
    cells: int
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Profiling events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TickProfile:
    """Per-phase timing of one scheduler pass.

    Attributes:
        time: Logical time of the pass.
        cells_executed: Cells whose body ran.
        prelude_ms: Applying alarms and async deposits.
        pass_ms: Walking the cells in order.
        conclude_ms: Running stream conclusion.
        total_ms: Whole ``evaluate`` call.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    time: float
    cells_executed: int
    prelude_ms: float
    pass_ms: float
    conclude_ms: float
    total_ms: float
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

RuntimeEvent: TypeAlias = (
    TickEvaluated
    | CellEvaluated
    | AsyncCompleted
    | ProgramMerged
    | TickProfile
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()

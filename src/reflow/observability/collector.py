"""Tick collector: records scheduler, merge and async events.

The program state calls the ``record_*`` methods when a collector is
attached; without one, the scheduler records nothing.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.

"""

from __future__ import annotations

from typing import Any

from reflow.observability.events import (
    AsyncCompleted,
    CellEvaluated,
    ProgramMerged,
    TickEvaluated,
    now_ns,
)
from reflow.observability.log import EventLog


class TickCollector:
    """Event collector for a running program.

    Args:
        log: The EventLog to store events in.
        trace_cells: Also record a ``CellEvaluated`` event per body run.

    """

    __slots__ = ("_log", "_ticks", "trace_cells")

    def __init__(self, log: EventLog | None = None, *, trace_cells: bool = False) -> None:
        self._log = log if log is not None else EventLog()
        self._ticks = 0
        self.trace_cells = trace_cells

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    @property
    def ticks(self) -> int:
        """Number of passes recorded so far."""
        return self._ticks

    def record(self, event: Any) -> None:
        """Record an arbitrary frozen event."""
        self._log.append(event)

    # ----- Scheduler events -----

    def record_tick(
        self,
        time: float,
        *,
        cells_ready: int = 0,
        cells_executed: int = 0,
        updated: bool = False,
        duration_ms: float = 0.0,
    ) -> None:
        """Record a completed scheduler pass."""
        self._ticks += 1
        self._log.append(
            TickEvaluated(
                tick=self._ticks,
                time=time,
                cells_ready=cells_ready,
                cells_executed=cells_executed,
                updated=updated,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_cell(self, cell_id: str, time: float, *, duration_ms: float = 0.0) -> None:
        """Record a cell body run (only when ``trace_cells`` is on)."""
        if not self.trace_cells:
            return
        self._log.append(
            CellEvaluated(
                cell_id=cell_id,
                time=time,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_async(
        self,
        name: str,
        outcome: str,
        *,
        error: BaseException | None = None,
    ) -> None:
        """Record an applied or dropped async completion."""
        self._log.append(
            AsyncCompleted(
                name=name,
                outcome=outcome,  # type: ignore[arg-type]
                error=repr(error) if error is not None else "",
                timestamp_ns=now_ns(),
            )
        )

    # ----- Hot reload events -----

    def record_merge(
        self,
        *,
        added: tuple[str, ...] = (),
        removed: tuple[str, ...] = (),
        modified: tuple[str, ...] = (),
        invalidated: tuple[str, ...] = (),
        cells: int = 0,
    ) -> None:
        """Record a program merge."""
        self._log.append(
            ProgramMerged(
                added=added,
                removed=removed,
                modified=modified,
                invalidated=invalidated,
                cells=cells,
                timestamp_ns=now_ns(),
            )
        )

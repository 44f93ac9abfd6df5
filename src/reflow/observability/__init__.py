"""Runtime observability: structured events for ticks, merges and async work.

All events are frozen dataclasses with nanosecond timestamps, stored in a
bounded, thread-safe ``EventLog``.

Quick Start:
    >>> from reflow.observability import EventLog, TickCollector
    >>> collector = TickCollector(EventLog())
    >>> # ProgramState(collector=collector) records every tick
    >>> len(collector.log)
    0

"""

from reflow.observability.collector import TickCollector
from reflow.observability.events import (
    AsyncCompleted,
    CellEvaluated,
    ProgramMerged,
    RuntimeEvent,
    TickEvaluated,
    TickProfile,
    now_ns,
)
from reflow.observability.log import EventLog
from reflow.observability.profiler import TickProfiler, compute_aggregate_stats

__all__ = [
    "AsyncCompleted",
    "CellEvaluated",
    "EventLog",
    "ProgramMerged",
    "RuntimeEvent",
    "TickCollector",
    "TickEvaluated",
    "TickProfile",
    "TickProfiler",
    "compute_aggregate_stats",
    "now_ns",
]

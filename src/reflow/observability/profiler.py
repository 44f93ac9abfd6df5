"""Tick profiler: measures per-phase scheduler latency.

Records prelude, pass and conclude timing for each ``evaluate`` call and
emits ``TickProfile`` events to the ``EventLog``.

Thread Safety:
    The profiler is used from the tick context (single-writer).
    Aggregate queries are protected by the underlying ``EventLog`` lock.

"""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from reflow.observability.events import TickProfile, now_ns

if TYPE_CHECKING:
    from reflow.observability.log import EventLog

_STAGES = ("prelude", "pass", "conclude")


@dataclass(slots=True)
class _Timer:
    """Accumulates timing for a named tick phase."""

    name: str
    _start: float = 0.0
    elapsed_ms: float = 0.0

    def start(self) -> None:
        self._start = time.perf_counter()

    def stop(self) -> None:
        if self._start > 0:
            self.elapsed_ms = (time.perf_counter() - self._start) * 1000
            self._start = 0.0


class TickProfiler:
    """Records per-phase timing for a single scheduler pass.

    Usage::

        profiler = TickProfiler(event_log)

        profiler.begin(time)
        profiler.start("prelude")
        # ... apply deposits ...
        profiler.stop("prelude")
        profiler.finish(cells_executed=3)

    After ``finish()``, a ``TickProfile`` event is appended to the log
    and, when verbose, a one-line summary is printed to stderr.

    """

    __slots__ = ("_log", "_t0", "_time", "_timers", "_verbose")

    def __init__(self, log: EventLog, *, verbose: bool = False) -> None:
        self._log = log
        self._verbose = verbose
        self._time = 0.0
        self._t0 = 0.0
        self._timers = {name: _Timer(name=name) for name in _STAGES}

    def begin(self, logical_time: float) -> None:
        """Start profiling a new pass."""
        self._time = logical_time
        self._t0 = time.perf_counter()
        for timer in self._timers.values():
            timer.elapsed_ms = 0.0

    def start(self, stage: str) -> None:
        """Start timing a named phase."""
        timer = self._timers.get(stage)
        if timer is not None:
            timer.start()

    def stop(self, stage: str) -> None:
        """Stop timing a named phase."""
        timer = self._timers.get(stage)
        if timer is not None:
            timer.stop()

    def finish(self, *, cells_executed: int = 0) -> TickProfile:
        """Finish profiling and emit the ``TickProfile`` event.

        Returns the profile for testing / inspection.

        """
        total_ms = (time.perf_counter() - self._t0) * 1000 if self._t0 > 0 else 0.0

        profile = TickProfile(
            time=self._time,
            cells_executed=cells_executed,
            prelude_ms=self._timers["prelude"].elapsed_ms,
            pass_ms=self._timers["pass"].elapsed_ms,
            conclude_ms=self._timers["conclude"].elapsed_ms,
            total_ms=total_ms,
            timestamp_ns=now_ns(),
        )

        self._log.append(profile)

        if self._verbose:
            self._print_summary(profile)

        return profile

    def _print_summary(self, p: TickProfile) -> None:
        """Print a one-line timing summary to stderr."""
        cells = "cell" if p.cells_executed == 1 else "cells"
        stages = (
            f"prelude: {p.prelude_ms:.2f}ms, "
            f"pass: {p.pass_ms:.2f}ms, "
            f"conclude: {p.conclude_ms:.2f}ms"
        )
        print(
            f"  [{p.total_ms:.2f}ms] t={p.time:g} -> {p.cells_executed} {cells} ran ({stages})",
            file=sys.stderr,
        )


def compute_aggregate_stats(
    log: EventLog,
    *,
    limit: int = 100,
) -> dict:
    """Compute aggregate latency statistics from recent ``TickProfile`` events.

    Returns a dict with p50, p95, p99, and per-phase averages.

    """
    profiles = log.query(event_type=TickProfile, limit=limit)
    if not profiles:
        return {"count": 0}

    totals = sorted(p.total_ms for p in profiles)
    count = len(totals)

    def percentile(data: list[float], pct: float) -> float:
        idx = int(len(data) * pct / 100)
        return data[min(idx, len(data) - 1)]

    return {
        "count": count,
        "total_ms": {
            "p50": round(percentile(totals, 50), 3),
            "p95": round(percentile(totals, 95), 3),
            "p99": round(percentile(totals, 99), 3),
            "min": round(totals[0], 3),
            "max": round(totals[-1], 3),
        },
        "avg_by_stage_ms": {
            "prelude": round(sum(p.prelude_ms for p in profiles) / count, 3),
            "pass": round(sum(p.pass_ms for p in profiles) / count, 3),
            "conclude": round(sum(p.conclude_ms for p in profiles) / count, 3),
        },
    }

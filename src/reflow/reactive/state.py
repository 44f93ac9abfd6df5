"""Program state: the tick scheduler and evaluator.

``ProgramState`` owns every per-variable table of a running program and
advances it one logical tick at a time::

    state = ProgramState()
    state.setup_program([a, b])
    state.evaluate(0)
    state.evaluate(50)
    state.resolved_value("b")

Each ``evaluate(now)`` call:

0. Sets the logical time, drops alarms that are due, and applies async
   completions deposited since the last tick.
1. Walks the cells in dependency order, skipping those that are not ready.
2. Runs a cell body only when its input snapshot changed; otherwise the
   previous output streams are reused as they are.
3. Lets each output stream decide its resolved record.
4. Concludes every stream (event records are cleared here).
5. Applies a program update requested by a cell during the tick.

Thread Safety:
    Ticks are single-threaded.  ``deposit()`` and ``wake()`` are the only
    methods meant to be called from other threads.

"""

from __future__ import annotations

import bisect
import sys
import time as _time
from collections import deque
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from reflow._errors import ReactiveError
from reflow.reactive._futures import as_handle, is_pending
from reflow.reactive.async_streams import FutureStream, GeneratorNextStream
from reflow.reactive.cell import base_var_name, is_deferred
from reflow.reactive.hmr import merge_program
from reflow.reactive.records import QueueRecord, ResolveRecord, same_value, same_values
from reflow.reactive.streams import BehaviorStream, EventStream, ReceiverStream, Stream
from reflow.reactive.subprogram import Subprogram, input_cells, output_map, read_outputs

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Callable, Iterable, Mapping

    from reflow._types import CellId, Flavor, LogFunc, VarName
    from reflow.observability.collector import TickCollector
    from reflow.observability.profiler import TickProfiler
    from reflow.reactive.cell import Cell
    from reflow.reactive.hmr import MergeResult

_TAG_STREAMS = (BehaviorStream, EventStream)

# Program whose pass is running in this context
_current: ContextVar[ProgramState | None] = ContextVar("reflow_current_program", default=None)


def _stderr_log(message: str) -> None:
    print(f"  {message}", file=sys.stderr)


def current_program() -> ProgramState:
    """Return the program whose cell body is running.

    Raises:
        ReactiveError: When called outside of a tick.

    """
    state = _current.get()
    if state is None:
        msg = "current_program() is only available while a program is evaluating"
        raise ReactiveError(msg)
    return state


class ProgramState:
    """Live state of one reactive program.

    Args:
        start_time: Subtracted from ``now`` to obtain logical time.
        loop: Event loop used to schedule coroutines returned by cells.
            Defaults to the running loop at the time a coroutine appears.
        collector: Optional ``TickCollector`` receiving tick, merge and
            async events.
        profiler: Optional ``TickProfiler`` timing each tick's phases.
        log: Diagnostic sink (one line per call); prints to stderr by default.

    """

    def __init__(
        self,
        start_time: float = 0.0,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        collector: TickCollector | None = None,
        profiler: TickProfiler | None = None,
        log: LogFunc | None = None,
    ) -> None:
        self.start_time = start_time
        self.time: float = 0.0
        self.loop = loop
        self.collector = collector
        self.profiler = profiler

        self.cells: dict[CellId, Cell] = {}
        self.order: tuple[CellId, ...] = ()
        self.streams: dict[VarName, Stream] = {}
        self.scratch: dict[VarName, Any] = {}
        self.resolved: dict[VarName, ResolveRecord] = {}
        self.input_snapshots: dict[CellId, list[Any]] = {}
        self.deferred_reads: frozenset[VarName] = frozenset()
        self.flavors: dict[VarName, Flavor] = {}

        self.updated = False
        self.current_cell: Cell | None = None

        # Sub-programs
        self.parent: ProgramState | None = None
        self.exports: tuple[VarName, ...] = ()
        self.subprograms: dict[str, Subprogram] = {}
        self._component_hosts: dict[CellId, list[str]] = {}

        self._log: LogFunc = log if log is not None else _stderr_log
        self._alarms: list[float] = []
        self._deposits: deque[Callable[[ProgramState], None]] = deque()
        self._waker: Callable[[], None] | None = None
        self._future_program: list[Cell] | None = None

    # ----- Program installation -----

    def setup_program(self, cells: Iterable[Cell]) -> MergeResult:
        """Merge *cells* into the live program (see ``reflow.reactive.hmr``)."""
        return merge_program(self, cells)

    def update_program(self, cells: Iterable[Cell]) -> None:
        """Replace the program, deferring to the end of a running tick."""
        cells = list(cells)
        if self.current_cell is not None:
            self._future_program = cells
            return
        self.setup_program(cells)
        self.request_alarm(0)
        self.wake()

    # ----- Tick -----

    def evaluate(self, now: float, *, conclude: bool = True) -> bool:
        """Run one tick at wall/logical clock value *now*.

        Returns:
            True if any resolved record was written during the tick.

        Raises:
            Any exception raised by a cell body, unchanged.

        """
        started = _time.perf_counter()
        self.time = now - self.start_time
        self.updated = False
        profiler = self.profiler
        if profiler is not None:
            profiler.begin(self.time)
            profiler.start("prelude")
        self._prelude()
        if profiler is not None:
            profiler.stop("prelude")
            profiler.start("pass")

        ready = executed = 0
        token = _current.set(self)
        try:
            for cell_id in self.order:
                c = self.cells[cell_id]
                self.current_cell = c
                if not self.ready(c):
                    continue
                ready += 1
                if self._run_cell(c):
                    executed += 1
        finally:
            self.current_cell = None
            _current.reset(token)

        if profiler is not None:
            profiler.stop("pass")
            profiler.start("conclude")
        if conclude:
            self.conclude()
        if profiler is not None:
            profiler.stop("conclude")

        if self._future_program is not None:
            cells, self._future_program = self._future_program, None
            self.setup_program(cells)
            self.request_alarm(0)

        if profiler is not None:
            profiler.finish(cells_executed=executed)
        if self.collector is not None:
            self.collector.record_tick(
                self.time,
                cells_ready=ready,
                cells_executed=executed,
                updated=self.updated,
                duration_ms=(_time.perf_counter() - started) * 1000,
            )
        return self.updated

    def _prelude(self) -> None:
        cut = bisect.bisect_right(self._alarms, self.time)
        del self._alarms[:cut]
        while self._deposits:
            apply = self._deposits.popleft()
            apply(self)

    def _run_cell(self, c: Cell) -> bool:
        """Run one ready cell; return True if its body executed."""
        inputs = [self.resolved_value(name) for name in c.inputs]
        last = self.input_snapshots.get(c.id)

        if same_values(self._snapshot(c, inputs), last) and not self._children_pending(c):
            outputs = [(name, self.streams.get(name)) for name in c.outputs]
            executed = False
        else:
            started = _time.perf_counter()
            produced = c.run(inputs)
            self.input_snapshots[c.id] = self._snapshot(c, inputs)
            outputs = [(name, self._install(c, name, produced.get(name))) for name in c.outputs]
            executed = True
            if self.collector is not None:
                self.collector.record_cell(
                    c.id, self.time, duration_ms=(_time.perf_counter() - started) * 1000
                )

        for name, stream in outputs:
            if stream is not None:
                stream.evaluate(self, name, c, inputs, last)
        return executed

    def _install(self, c: Cell, name: VarName, value: Any) -> Stream:
        previous = self.streams.get(name)
        if isinstance(value, Stream) or is_pending(value):
            stream = value if isinstance(value, Stream) else FutureStream(as_handle(value, self.loop))
            if previous is not None and previous.kind is not stream.kind:
                self.discard_variable(name)
            stream = stream.created(self, name)
            self.streams[name] = stream
            return stream

        if previous is not None and not isinstance(previous, _TAG_STREAMS):
            self.discard_variable(name)
        stream = EventStream() if self._is_event(c, name) else BehaviorStream()
        self.streams[name] = stream
        if value is not None:
            current = self.resolved.get(name)
            if current is None or not same_value(current.value, value):
                self.set_resolved(name, value)
        return stream

    def _is_event(self, c: Cell, name: VarName) -> bool:
        """Flavor of a plain value: declared, inferred at merge, or from live inputs."""
        if self.flavors.get(name, c.flavor) == "event":
            return True
        if c.flavor is not None:
            return False
        live = (self.streams.get(var) for var in c.inputs if not is_deferred(var))
        return any(stream is not None and not stream.is_behavior for stream in live)

    def _snapshot(self, c: Cell, inputs: list[Any]) -> list[Any]:
        # Component hosts re-run every tick so their children advance.
        if c.id in self._component_hosts:
            return [*inputs, self.time]
        return inputs

    def _children_pending(self, c: Cell) -> bool:
        keys = self._component_hosts.get(c.id, ())
        return any(
            key in self.subprograms and self.subprograms[key].state.has_deposits for key in keys
        )

    def conclude(self) -> None:
        """Run every stream's conclusion in evaluation order."""
        for cell_id in self.order:
            for name in self.cells[cell_id].outputs:
                stream = self.streams.get(name)
                if stream is not None:
                    stream.conclude(self, name)

    # ----- Readiness -----

    def ready(self, c: Cell) -> bool:
        """Ask the cell's output streams whether it may run this tick."""
        if self._children_pending(c):
            return True
        answers = []
        for name in c.outputs:
            stream = self.streams.get(name)
            answers.append(stream.ready(self, name, c) if stream is not None else None)
        if all(answer is None for answer in answers):
            return self.default_ready(c)
        return any(answers)

    def default_ready(self, c: Cell) -> bool:
        """True when every non-forced input has a resolved value."""
        return all(
            name in c.forced or self.resolved_value(name) is not None for name in c.inputs
        )

    # ----- Resolved records -----

    def resolved_value(self, name: VarName) -> Any:
        """Current value of *name* (``$name`` reads ``name``), or None."""
        record = self.resolved.get(base_var_name(name))
        return record.value if record is not None else None

    def set_resolved(self, name: VarName, value: Any) -> None:
        self.resolved[name] = ResolveRecord(value=value, time=self.time)
        self.updated = True
        if name in self.deferred_reads:
            self.request_alarm(0)

    def clear_resolved(self, name: VarName) -> VarName | None:
        """Drop the record of *name*; return the name if one existed."""
        if self.resolved.pop(name, None) is None:
            return None
        return name

    def inject(self, name: VarName, value: Any) -> None:
        """Provide a host value for *name* as a behavior.

        Cells reading *name* see it from the next pass on.  Injecting over
        a cell's output is overwritten the next time that cell runs.

        """
        self.set_resolved(name, value)
        if name not in self.streams:
            self.streams[name] = BehaviorStream()

    # ----- Teardown helpers -----

    def teardown_stream(self, name: VarName) -> None:
        """Run scratch cleanup and drop the record and stream of *name*."""
        record = self.scratch.get(name)
        if isinstance(record, QueueRecord):
            record.run_cleanup()
        self.resolved.pop(name, None)
        self.streams.pop(name, None)

    def discard_variable(self, name: VarName) -> None:
        """Drop every trace of *name*: record, stream and scratch."""
        self.teardown_stream(name)
        self.scratch.pop(name, None)

    # ----- Messages, deposits and alarms -----

    def register_event(self, receiver: VarName, value: Any) -> bool:
        """Deposit *value* into the receiver stream named *receiver*.

        Returns False (and logs) when no receiver is live under that name.

        """
        stream = self.streams.get(receiver)
        if not isinstance(stream, ReceiverStream):
            self.log(f"No receiver named {receiver!r}; sent value dropped")
            return False
        stream.put(self, receiver, value)
        self.request_alarm(0)
        return True

    def deposit(self, apply: Callable[[ProgramState], None]) -> None:
        """Queue ``apply(state)`` for the next tick's prelude.  Thread-safe."""
        self._deposits.append(apply)
        self.wake()

    @property
    def has_deposits(self) -> bool:
        return bool(self._deposits)

    def request_alarm(self, offset: float) -> None:
        """Ask for a tick at logical time ``time + offset``.

        Sub-programs forward the request to their parent.
        """
        if self.parent is not None:
            self.parent.request_alarm(offset)
            return
        at = self.time + max(offset, 0)
        index = bisect.bisect_left(self._alarms, at)
        if index < len(self._alarms) and self._alarms[index] == at:
            return
        self._alarms.insert(index, at)

    @property
    def next_alarm(self) -> float | None:
        """Earliest requested logical tick time, or None."""
        return self._alarms[0] if self._alarms else None

    def set_waker(self, waker: Callable[[], None] | None) -> None:
        """Install the callable used to wake the tick driver."""
        self._waker = waker

    def wake(self) -> None:
        if self.parent is not None:
            self.parent.wake()
            return
        waker = self._waker
        if waker is not None:
            waker()

    # ----- Sub-programs -----

    def merge(self, *cells: Cell) -> None:
        """Add *cells* to the program, replacing same-id definitions."""
        merged = dict(self.cells)
        merged.update((c.id, c) for c in cells)
        self.update_program(merged.values())

    def set_resolved_for_subgraph(self, name: VarName, value: Any) -> None:
        """Feed a sub-program input as a behavior its defining cell never overwrites."""
        self.set_resolved(name, value)
        self.input_snapshots[name] = []
        self.streams[name] = BehaviorStream()

    def component(
        self,
        cells: Iterable[Cell],
        *,
        inputs: Iterable[VarName] = (),
        outputs: Mapping[str, VarName] | Iterable[VarName] = (),
    ) -> Callable[[Mapping[str, Any], str], dict[str, Any]]:
        """Return a keyed runner for a nested program.

        ``instance(values, key)`` feeds *values* into the child program
        owned by *key* (created on first use, reinstalled when the cells'
        code changes), evaluates it at this program's time and returns the
        defined *outputs*.  Call it from a cell body: the calling cell then
        re-runs every tick, and when the child has pending async results.

        """
        program = [*input_cells(inputs), *cells]
        signature = tuple(c.code for c in program)
        names = output_map(outputs)

        def instance(values: Mapping[str, Any], key: str) -> dict[str, Any]:
            sub = self.subprograms.get(key)
            if sub is None:
                child = ProgramState(self.time, loop=self.loop, log=self._log)
                child.parent = self
                sub = Subprogram(state=child, signature=(), outputs=names)
                self.subprograms[key] = sub
            if sub.signature != signature:
                sub.state.setup_program(program)
                sub.signature = signature
                sub.outputs = names
            self._attach_component(sub, key)

            child = sub.state
            for name, value in values.items():
                child.set_resolved_for_subgraph(name, value)
            child.evaluate(self.time, conclude=False)
            result = read_outputs(child, sub.outputs)
            child.conclude()
            return result

        return instance

    def _attach_component(self, sub: Subprogram, key: str) -> None:
        c = self.current_cell
        if c is None:
            self.log(f"Component {key!r} used outside of a cell body")
            return
        if sub.host is not None and sub.host != c.id:
            self.log(f"Component key {key!r} is shared by cells {sub.host!r} and {c.id!r}")
            return
        sub.host = c.id
        keys = self._component_hosts.setdefault(c.id, [])
        if key not in keys:
            keys.append(key)

    def drop_components(self, cell_id: CellId) -> None:
        """Discard the sub-programs created by *cell_id*."""
        for key in self._component_hosts.pop(cell_id, []):
            self.subprograms.pop(key, None)

    def renkonify(
        self,
        cells: Iterable[Cell],
        *,
        inputs: Iterable[VarName] = (),
        outputs: Mapping[str, VarName] | Iterable[VarName] = (),
    ) -> Callable[[Mapping[str, Any]], GeneratorNextStream]:
        """Wrap a nested program as a generator-driven event stream.

        ``start(values)`` returns a stream that feeds *values* into a fresh
        copy of the program, then evaluates it once per step and emits its
        defined *outputs* whenever they changed.

        """
        program = [*input_cells(inputs), *cells]
        names = output_map(outputs)

        def steps(values: dict[str, Any]) -> Any:
            child = ProgramState(loop=self.loop, log=self._log)
            child.setup_program(program)
            for name, value in values.items():
                child.set_resolved_for_subgraph(name, value)
            last: list[Any] | None = None
            while True:
                child.evaluate(self.time)
                snapshot = [child.resolved_value(name) for name in names.values()]
                yield None if same_values(snapshot, last) else read_outputs(child, names)
                last = snapshot

        def start(values: Mapping[str, Any]) -> GeneratorNextStream:
            return GeneratorNextStream(steps(dict(values)))

        return start

    def evaluate_subprogram(
        self, child: ProgramState, params: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        """Send *params* to *child*'s receivers and run one tick of it.

        Returns the defined values of ``child.exports``, or None when the
        tick changed nothing.
        """
        for name, value in params.items():
            child.register_event(name, value)
        child.evaluate(self.time, conclude=False)
        result = read_outputs(child, output_map(child.exports)) if child.updated else None
        child.conclude()
        return result

    # ----- Diagnostics -----

    def set_log(self, log: LogFunc) -> None:
        self._log = log

    def log(self, message: str) -> None:
        self._log(message)

    def note_async(self, name: VarName, outcome: str, error: BaseException | None = None) -> None:
        """Report an applied or dropped async completion."""
        if outcome == "failed":
            self.log(f"Async value for {name!r} failed: {error!r}")
        if self.collector is not None:
            self.collector.record_async(name, outcome, error=error)

"""Stream catalog: synchronous reactive variable kinds.

Every kind is a small state machine bound to one output variable and
driven by the scheduler through four hooks:

- ``created(state, name)``: runs when a cell body produces the stream.
- ``ready(state, name, cell)``: may the cell run this tick?
- ``evaluate(state, name, cell, inputs, last_inputs)``: decide the new
  resolved record.
- ``conclude(state, name)``: end-of-tick cleanup and continuations.

Streams never reach into scheduler internals beyond the public state
surface (``resolved``, ``scratch``, ``set_resolved()`` ...), which is
passed to every hook explicitly.

The catalog is closed: ``StreamKind`` enumerates every kind.  Kinds whose
completion is asynchronous live in ``reflow.reactive.async_streams``.
"""

from __future__ import annotations

import math
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

from reflow.reactive.records import (
    IndexedValue,
    QueueRecord,
    ReceiverRecord,
    ResolveRecord,
    same_value,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from reflow._types import VarName
    from reflow.reactive.cell import Cell
    from reflow.reactive.state import ProgramState


class StreamKind(StrEnum):
    """Closed set of stream kinds."""

    BEHAVIOR = "behavior"
    EVENT = "event"
    DELAY = "delay"
    TIMER = "timer"
    FUTURE = "future"
    OR = "or"
    USER_EVENT = "user_event"
    SEND = "send"
    RECEIVER = "receiver"
    CHANGE = "change"
    ONCE = "once"
    COLLECT = "collect"
    SELECT = "select"
    GATHER = "gather"
    RESOLVE_PART = "resolve_part"
    GENERATOR_NEXT = "generator_next"


def input_index(cell: Cell, var_name: VarName) -> int | None:
    """Position of *var_name* among the cell's inputs (deferred or not)."""
    try:
        return cell.input_vars.index(var_name)
    except ValueError:
        return None


def _sample(values: Sequence[Any] | None, index: int | None) -> Any:
    if values is None or index is None or index >= len(values):
        return None
    return values[index]


class Stream:
    """Base stream: default readiness, no-op evaluation, event cleanup.

    Attributes:
        is_behavior: Behavior-flavored records persist across ticks;
            event-flavored ones are cleared by ``conclude``.

    """

    kind: ClassVar[StreamKind]

    __slots__ = ("is_behavior",)

    def __init__(self, *, is_behavior: bool) -> None:
        self.is_behavior = is_behavior

    def created(self, state: ProgramState, name: VarName) -> Stream:
        return self

    def ready(self, state: ProgramState, name: VarName, cell: Cell) -> bool:
        return state.default_ready(cell)

    def evaluate(
        self,
        state: ProgramState,
        name: VarName,
        cell: Cell,
        inputs: list[Any],
        last_inputs: list[Any] | None,
    ) -> None:
        return None

    def conclude(self, state: ProgramState, name: VarName) -> VarName | None:
        """Clear an event-flavored record; return the cleared name."""
        if self.is_behavior:
            return None
        return state.clear_resolved(name)

    def __repr__(self) -> str:
        flavor = "behavior" if self.is_behavior else "event"
        return f"<{type(self).__name__} {flavor}>"


class BehaviorStream(Stream):
    """Flavor tag for plain values that persist."""

    kind = StreamKind.BEHAVIOR
    __slots__ = ()

    def __init__(self) -> None:
        super().__init__(is_behavior=True)


class EventStream(Stream):
    """Flavor tag for plain values visible for one tick."""

    kind = StreamKind.EVENT
    __slots__ = ()

    def __init__(self) -> None:
        super().__init__(is_behavior=False)


class DelayStream(Stream):
    """Re-emit the tracked input after a fixed logical latency.

    Scratch holds a ``QueueRecord`` of ``(value, release_time)`` entries.
    Behavior delays enqueue only when the sample changed; event delays
    enqueue every defined sample.

    """

    kind = StreamKind.DELAY
    __slots__ = ("latency", "var_name")

    def __init__(self, var_name: VarName, latency: float, *, is_behavior: bool) -> None:
        if latency < 0:
            msg = f"delay latency must be non-negative, got {latency}"
            raise ValueError(msg)
        super().__init__(is_behavior=is_behavior)
        self.var_name = var_name
        self.latency = latency

    def created(self, state: ProgramState, name: VarName) -> Stream:
        if not isinstance(state.scratch.get(name), QueueRecord):
            state.scratch[name] = QueueRecord()
        return self

    def ready(self, state: ProgramState, name: VarName, cell: Cell) -> bool:
        record = state.scratch.get(name)
        if isinstance(record, QueueRecord) and record.queue and record.queue[0].time <= state.time:
            return True
        return state.default_ready(cell)

    def evaluate(
        self,
        state: ProgramState,
        name: VarName,
        cell: Cell,
        inputs: list[Any],
        last_inputs: list[Any] | None,
    ) -> None:
        record = state.scratch.get(name)
        if not isinstance(record, QueueRecord):
            return
        index = input_index(cell, self.var_name)
        value = _sample(inputs, index)
        if value is not None and (
            not self.is_behavior or not same_value(value, _sample(last_inputs, index))
        ):
            record.queue.append(ResolveRecord(value=value, time=state.time + self.latency))
            state.request_alarm(self.latency)

        due: ResolveRecord | None = None
        while record.queue and record.queue[0].time <= state.time:
            due = record.queue.popleft()
        if due is not None:
            state.set_resolved(name, due.value)


class TimerStream(Stream):
    """Resolve ``interval * floor(time / interval)`` at each boundary.

    Scratch holds the last trigger value.

    """

    kind = StreamKind.TIMER
    __slots__ = ("interval",)

    def __init__(self, interval: float, *, is_behavior: bool) -> None:
        if interval <= 0:
            msg = f"timer interval must be positive, got {interval}"
            raise ValueError(msg)
        super().__init__(is_behavior=is_behavior)
        self.interval = interval

    def ready(self, state: ProgramState, name: VarName, cell: Cell) -> bool:
        last = state.scratch.get(name)
        return last is None or last + self.interval <= state.time

    def evaluate(
        self,
        state: ProgramState,
        name: VarName,
        cell: Cell,
        inputs: list[Any],
        last_inputs: list[Any] | None,
    ) -> None:
        trigger = self.interval * math.floor(state.time / self.interval)
        last = state.scratch.get(name)
        if last is not None and same_value(trigger, last):
            return
        state.set_resolved(name, trigger)
        state.scratch[name] = trigger

    def conclude(self, state: ProgramState, name: VarName) -> VarName | None:
        last = state.scratch.get(name)
        if last is not None:
            state.request_alarm(last + self.interval - state.time)
        return super().conclude(state, name)


class ChangeStream(Stream):
    """Emit the input value only when it differs from the last sample."""

    kind = StreamKind.CHANGE
    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        super().__init__(is_behavior=False)
        self.value = value

    def created(self, state: ProgramState, name: VarName) -> Stream:
        state.scratch[name] = self.value
        return self

    def ready(self, state: ProgramState, name: VarName, cell: Cell) -> bool:
        if cell.inputs:
            current = state.resolved_value(cell.inputs[0])
            if current is not None and same_value(current, state.scratch.get(name)):
                return False
        return state.default_ready(cell)

    def evaluate(
        self,
        state: ProgramState,
        name: VarName,
        cell: Cell,
        inputs: list[Any],
        last_inputs: list[Any] | None,
    ) -> None:
        state.set_resolved(name, self.value)
        state.scratch[name] = _sample(inputs, 0)


class OnceStream(Stream):
    """Emit a fixed value the first tick it is ready, never again."""

    kind = StreamKind.ONCE
    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        super().__init__(is_behavior=False)
        self.value = value

    def ready(self, state: ProgramState, name: VarName, cell: Cell) -> bool:
        if state.scratch.get(name) is True:
            return False
        return state.default_ready(cell)

    def evaluate(
        self,
        state: ProgramState,
        name: VarName,
        cell: Cell,
        inputs: list[Any],
        last_inputs: list[Any] | None,
    ) -> None:
        if state.scratch.get(name) is True:
            return
        state.scratch[name] = True
        state.set_resolved(name, self.value)


class OrStream(Stream):
    """Merge several inputs.

    Default mode resolves the first defined input in positional order.
    Index mode wraps it as ``IndexedValue(position, value)``.  Collect mode
    resolves the list of all defined values (or of their positions in
    index mode).

    """

    kind = StreamKind.OR
    __slots__ = ("collect", "use_index", "var_names")

    def __init__(
        self,
        var_names: Sequence[VarName],
        *,
        use_index: bool = False,
        collect: bool = False,
        is_behavior: bool = False,
    ) -> None:
        super().__init__(is_behavior=is_behavior)
        self.var_names = tuple(var_names)
        self.use_index = use_index
        self.collect = collect

    def _names(self, cell: Cell) -> tuple[VarName, ...]:
        return self.var_names or cell.input_vars

    def ready(self, state: ProgramState, name: VarName, cell: Cell) -> bool:
        return any(state.resolved_value(var) is not None for var in self._names(cell))

    def evaluate(
        self,
        state: ProgramState,
        name: VarName,
        cell: Cell,
        inputs: list[Any],
        last_inputs: list[Any] | None,
    ) -> None:
        defined: list[tuple[int, Any]] = []
        for position, var in enumerate(self._names(cell)):
            value = _sample(inputs, input_index(cell, var))
            if value is not None:
                defined.append((position, value))
        if not defined:
            return

        if self.collect:
            result: Any = [
                position if self.use_index else value for position, value in defined
            ]
        else:
            position, value = defined[0]
            result = IndexedValue(index=position, value=value) if self.use_index else value
        state.set_resolved(name, result)


class UserEventStream(Stream):
    """Bridge an external producer's deposits into the tick model.

    The producer calls ``notify(value)`` from any thread; values wait in
    the scratch ``QueueRecord`` until the next tick drains them.  With
    ``queued=False`` only the latest deposit surfaces; with ``queued=True``
    all pending deposits surface as a list.

    """

    kind = StreamKind.USER_EVENT
    __slots__ = ("callback", "queued", "record")

    def __init__(
        self,
        record: QueueRecord,
        *,
        queued: bool = False,
        callback: Callable[[Callable[[Any], None]], Any] | None = None,
    ) -> None:
        super().__init__(is_behavior=False)
        self.record = record
        self.queued = queued
        self.callback = callback

    def created(self, state: ProgramState, name: VarName) -> Stream:
        old = state.scratch.get(name)
        if old is self.record:
            return self
        if isinstance(old, QueueRecord):
            old.run_cleanup()
        state.scratch[name] = self.record

        if self.callback is not None:
            record = self.record

            def notify(value: Any) -> None:
                record.queue.append(ResolveRecord(value=value, time=state.time))
                state.wake()

            self.record.cleanup = self.callback(notify)
        return self

    def ready(self, state: ProgramState, name: VarName, cell: Cell) -> bool:
        record = state.scratch.get(name)
        if isinstance(record, QueueRecord) and record.queue:
            return True
        return state.default_ready(cell)

    def evaluate(
        self,
        state: ProgramState,
        name: VarName,
        cell: Cell,
        inputs: list[Any],
        last_inputs: list[Any] | None,
    ) -> None:
        record = state.scratch.get(name)
        if not isinstance(record, QueueRecord) or not record.queue:
            return
        drained = []
        while record.queue:
            drained.append(record.queue.popleft().value)
        state.set_resolved(name, drained if self.queued else drained[-1])


class SendStream(Stream):
    """Deposit a value into a named receiver when the sending cell runs."""

    kind = StreamKind.SEND
    __slots__ = ("receiver", "value")

    def __init__(self, receiver: VarName, value: Any) -> None:
        super().__init__(is_behavior=False)
        self.receiver = receiver
        self.value = value

    def created(self, state: ProgramState, name: VarName) -> Stream:
        state.register_event(self.receiver, self.value)
        return self


class ReceiverStream(Stream):
    """Surface values sent to this variable, emptying the slot each time.

    Event receivers clear their record at conclusion; behavior receivers
    keep the last received value until the next one arrives.

    """

    kind = StreamKind.RECEIVER
    __slots__ = ("initial", "queued")

    def __init__(self, *, queued: bool = False, is_behavior: bool = False, initial: Any = None) -> None:
        super().__init__(is_behavior=is_behavior)
        self.queued = queued
        self.initial = initial

    def created(self, state: ProgramState, name: VarName) -> Stream:
        record = state.scratch.get(name)
        if not isinstance(record, ReceiverRecord) or record.queued != self.queued:
            record = ReceiverRecord(queued=self.queued)
            state.scratch[name] = record
            if self.initial is not None:
                record.put(self.initial)
        return self

    def put(self, state: ProgramState, name: VarName, value: Any) -> None:
        """Deposit *value* into the receiver slot."""
        record = state.scratch.get(name)
        if not isinstance(record, ReceiverRecord):
            record = ReceiverRecord(queued=self.queued)
            state.scratch[name] = record
        record.put(value)

    def ready(self, state: ProgramState, name: VarName, cell: Cell) -> bool:
        record = state.scratch.get(name)
        if isinstance(record, ReceiverRecord) and record.values:
            return True
        return state.default_ready(cell)

    def evaluate(
        self,
        state: ProgramState,
        name: VarName,
        cell: Cell,
        inputs: list[Any],
        last_inputs: list[Any] | None,
    ) -> None:
        record = state.scratch.get(name)
        if not isinstance(record, ReceiverRecord):
            return
        value = record.take()
        if value is not None:
            state.set_resolved(name, value)
